"""
Wallet Manager
Holds the deployer account built from the signing credential
"""

from decimal import Decimal
from typing import Dict
from web3 import Web3
from eth_account import Account
from loguru import logger

from deployment.errors import SigningError


class WalletManager:
    """
    Deployer wallet

    The private key is read once from NetworkConfig and only ever used
    to sign; it is never logged or echoed back in errors.
    """

    def __init__(self, private_key: str):
        """
        Initialize wallet manager

        Args:
            private_key: Hex private key (with or without 0x)
        """
        if not private_key:
            raise SigningError(
                "PRIVATE_KEY is not set - refusing to deploy without a signing credential"
            )

        try:
            self.account = Account.from_key(private_key)
        except Exception as e:
            # Error text from eth_keys may quote the input, so drop it
            raise SigningError(
                f"PRIVATE_KEY is not a valid secp256k1 private key ({type(e).__name__})"
            ) from None

        self.address = self.account.address
        logger.info(f"Deployer wallet: {self.address}")

    def sign_transaction(self, transaction: Dict):
        """
        Sign a transaction with the deployer key

        Args:
            transaction: Transaction dict

        Returns:
            Signed transaction
        """
        try:
            return self.account.sign_transaction(transaction)
        except (ValueError, TypeError) as e:
            raise SigningError(f"Error signing transaction: {e}") from e

    def get_balance(self, w3: Web3) -> int:
        """Get deployer balance in wei"""
        return w3.eth.get_balance(self.address)

    def get_balance_ether(self, w3: Web3) -> Decimal:
        """Get deployer balance in ether"""
        return Decimal(str(w3.from_wei(self.get_balance(w3), 'ether')))
