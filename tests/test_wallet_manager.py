"""
Unit Tests for the Wallet Manager
"""

import pytest

from blockchain.wallet_manager import WalletManager
from deployment.errors import SigningError

from conftest import DEPLOYER, PRIVATE_KEY


class TestWalletManager:
    """Test deployer wallet"""

    def test_address_from_key(self):
        assert WalletManager(PRIVATE_KEY).address == DEPLOYER

    def test_empty_key_fails_fast(self):
        with pytest.raises(SigningError, match="PRIVATE_KEY is not set"):
            WalletManager("")

    def test_invalid_key_not_echoed(self):
        bad_key = "0xdeadbeefnotakey"

        with pytest.raises(SigningError) as exc_info:
            WalletManager(bad_key)

        assert bad_key not in str(exc_info.value)
        assert exc_info.value.__cause__ is None

    def test_sign_creation_transaction(self):
        wallet = WalletManager(PRIVATE_KEY)
        signed = wallet.sign_transaction({
            'from': DEPLOYER,
            'value': 0,
            'data': '0x600060005360016000f3',
            'chainId': 5,
            'nonce': 0,
            'gas': 100000,
            'maxFeePerGas': 2 * 10**10,
            'maxPriorityFeePerGas': 10**9
        })

        assert len(signed.raw_transaction) > 0
