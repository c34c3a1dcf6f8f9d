"""
Unit Tests for the Deployment Driver
"""

import asyncio

import pytest
from eth_abi import encode
from web3 import Web3
from web3.exceptions import TransactionNotFound, Web3RPCError

from deployment.config import NetworkConfig
from deployment.driver import DeploymentDriver
from deployment.errors import (
    ConfirmationTimeoutError,
    DeploymentError,
    DeploymentRevertedError,
    InsufficientFundsError,
    NetworkError,
    SigningError,
)
from deployment.parameters import DeploymentParameters

from conftest import DEPLOYER, PRIVATE_KEY, make_receipt

ADDRESS_A = '0x5FbDB2315678afecb367f032d93F642f64180aa3'
ADDRESS_B = '0xe7f1725E7734CE288F8367e1Bb143E90bb3F0512'


@pytest.fixture
def config():
    return NetworkConfig(
        network="goerli",
        endpoint_url="https://goerli.example/rpc",
        signing_credential=PRIVATE_KEY,
        verification_api_key="",
        chain_id=5
    )


@pytest.fixture
def parameters():
    return DeploymentParameters.from_ether("100", "1")


@pytest.fixture
def driver(config, settings, w3):
    return DeploymentDriver(config, settings, w3=w3)


class TestDeploy:
    """Test the deploy workflow against a mocked node"""

    @pytest.mark.asyncio
    async def test_successful_deployment(self, driver, w3, parameters):
        result = await driver.deploy(parameters, timeout=5)

        assert result.address == ADDRESS_A
        assert result.contract_name == "KipuBank"
        assert result.tx_hash == '0x' + '11' * 32
        assert result.deployer == DEPLOYER
        assert result.network == "goerli"
        assert result.chain_id == 5
        assert result.constructor_args == encode(
            ['uint256', 'uint256'], [100 * 10**18, 10**18]
        ).hex()
        assert driver.state == "confirmed"
        w3.eth.send_raw_transaction.assert_called_once()

    @pytest.mark.asyncio
    async def test_two_deployments_give_two_addresses(self, driver, w3, parameters):
        """No deduplication: each call creates a new instance"""
        w3.eth.get_transaction_receipt.side_effect = [
            make_receipt(ADDRESS_A),
            make_receipt(ADDRESS_B, block_number=2)
        ]

        first = await driver.deploy(parameters, timeout=5)
        second = await driver.deploy(parameters, timeout=5)

        assert first.address != second.address
        assert w3.eth.send_raw_transaction.call_count == 2

    @pytest.mark.asyncio
    async def test_empty_credential_fails_before_network(self, settings, w3, parameters):
        config = NetworkConfig(network="goerli", endpoint_url="https://rpc", chain_id=5)
        driver = DeploymentDriver(config, settings, w3=w3)

        with pytest.raises(SigningError):
            await driver.deploy(parameters)

        w3.is_connected.assert_not_called()
        w3.eth.send_raw_transaction.assert_not_called()

    @pytest.mark.asyncio
    async def test_missing_endpoint(self, settings, parameters):
        config = NetworkConfig(network="goerli", signing_credential=PRIVATE_KEY, chain_id=5)

        with pytest.raises(NetworkError, match="not configured"):
            await DeploymentDriver(config, settings).deploy(parameters)

    @pytest.mark.asyncio
    async def test_unreachable_node(self, driver, w3, parameters):
        w3.is_connected.return_value = False

        with pytest.raises(NetworkError, match="Failed to connect"):
            await driver.deploy(parameters)

    @pytest.mark.asyncio
    async def test_wrong_chain(self, driver, w3, parameters):
        w3.eth.chain_id = 1

        with pytest.raises(NetworkError, match="expected 5"):
            await driver.deploy(parameters)

        w3.eth.send_raw_transaction.assert_not_called()

    @pytest.mark.asyncio
    async def test_insufficient_balance(self, driver, w3, parameters):
        w3.eth.get_balance.return_value = 1

        with pytest.raises(InsufficientFundsError):
            await driver.deploy(parameters)

        w3.eth.send_raw_transaction.assert_not_called()

    @pytest.mark.asyncio
    async def test_base_fee_above_cap_fails_before_signing(self, driver, w3, parameters):
        w3.eth.get_block.return_value = {'baseFeePerGas': Web3.to_wei(500, 'gwei')}

        with pytest.raises(DeploymentError, match="above max_gas_price_gwei"):
            await driver.deploy(parameters)

        w3.eth.send_raw_transaction.assert_not_called()
        assert driver.state == "failed"

    @pytest.mark.asyncio
    async def test_node_rejects_for_funds(self, driver, w3, parameters):
        w3.eth.send_raw_transaction.side_effect = Web3RPCError(
            "insufficient funds for gas * price + value"
        )

        with pytest.raises(InsufficientFundsError):
            await driver.deploy(parameters)

    @pytest.mark.asyncio
    async def test_node_rejects_other(self, driver, w3, parameters):
        w3.eth.send_raw_transaction.side_effect = Web3RPCError("nonce too low")

        with pytest.raises(NetworkError, match="nonce too low"):
            await driver.deploy(parameters)

    @pytest.mark.asyncio
    async def test_transport_error_on_submit_propagates(self, driver, w3, parameters):
        w3.eth.send_raw_transaction.side_effect = ConnectionError("connection reset")

        with pytest.raises(ConnectionError):
            await driver.deploy(parameters)

    @pytest.mark.asyncio
    async def test_transport_error_while_waiting_propagates(self, driver, w3, parameters):
        w3.eth.get_transaction_receipt.side_effect = ConnectionError("connection reset")

        with pytest.raises(ConnectionError):
            await driver.deploy(parameters, timeout=5)

        assert driver.state == "failed"

    @pytest.mark.asyncio
    async def test_reverted(self, driver, w3, parameters):
        w3.eth.get_transaction_receipt.return_value = make_receipt(ADDRESS_A, status=0)

        with pytest.raises(DeploymentRevertedError) as exc_info:
            await driver.deploy(parameters, timeout=5)

        assert exc_info.value.tx_hash == '0x' + '11' * 32
        assert driver.state == "failed"

    @pytest.mark.asyncio
    async def test_no_code_at_address(self, driver, w3, parameters):
        w3.eth.get_code.return_value = b''

        with pytest.raises(DeploymentError, match="No contract code"):
            await driver.deploy(parameters, timeout=5)

        assert driver.state == "failed"


class TestState:
    """Test the driver state across runs"""

    @pytest.mark.asyncio
    async def test_failed_rerun_after_success(self, driver, w3, parameters):
        await driver.deploy(parameters, timeout=5)
        assert driver.state == "confirmed"

        w3.eth.send_raw_transaction.side_effect = ConnectionError("connection reset")

        with pytest.raises(ConnectionError):
            await driver.deploy(parameters, timeout=5)

        assert driver.state == "failed"

    @pytest.mark.asyncio
    async def test_failure_before_submission(self, driver, w3, parameters):
        w3.eth.chain_id = 1

        with pytest.raises(NetworkError):
            await driver.deploy(parameters)

        assert driver.state == "failed"

    @pytest.mark.asyncio
    async def test_signing_failure(self, settings, w3, parameters):
        config = NetworkConfig(network="goerli", endpoint_url="https://rpc", chain_id=5)
        driver = DeploymentDriver(config, settings, w3=w3)

        with pytest.raises(SigningError):
            await driver.deploy(parameters)

        assert driver.state == "failed"

    @pytest.mark.asyncio
    async def test_success_after_failure(self, driver, w3, parameters):
        w3.eth.get_balance.return_value = 1
        with pytest.raises(InsufficientFundsError):
            await driver.deploy(parameters)
        assert driver.state == "failed"

        w3.eth.get_balance.return_value = 10 * 10**18
        await driver.deploy(parameters, timeout=5)

        assert driver.state == "confirmed"

    @pytest.mark.asyncio
    async def test_cancelled_wait(self, driver, w3, parameters):
        w3.eth.get_transaction_receipt.side_effect = TransactionNotFound("pending")

        task = asyncio.ensure_future(driver.deploy(parameters))
        await asyncio.sleep(0.05)
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task

        assert driver.state == "failed"


class TestWaitForReceipt:
    """Test the bounded confirmation wait"""

    @pytest.mark.asyncio
    async def test_timeout(self, driver, w3, parameters):
        w3.eth.get_transaction_receipt.side_effect = TransactionNotFound("not found")

        with pytest.raises(ConfirmationTimeoutError) as exc_info:
            await driver.deploy(parameters, timeout=0.05)

        assert exc_info.value.tx_hash == '0x' + '11' * 32
        assert driver.state == "failed"

    @pytest.mark.asyncio
    async def test_polls_until_mined(self, driver, w3):
        w3.eth.get_transaction_receipt.side_effect = [
            TransactionNotFound("pending"),
            TransactionNotFound("pending"),
            make_receipt(ADDRESS_A)
        ]

        receipt = await driver.wait_for_receipt('0x' + '22' * 32, timeout=5)

        assert receipt['contractAddress'] == ADDRESS_A
        assert w3.eth.get_transaction_receipt.call_count == 3

    @pytest.mark.asyncio
    async def test_cancellation(self, driver, w3):
        """With no timeout the caller can still cancel the wait"""
        w3.eth.get_transaction_receipt.side_effect = TransactionNotFound("pending")

        task = asyncio.ensure_future(driver.wait_for_receipt('0x' + '22' * 32, timeout=None))
        await asyncio.sleep(0.05)
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task


class TestConnect:
    """Test Web3 construction"""

    def test_builds_http_provider(self, config, settings, monkeypatch):
        monkeypatch.setattr(Web3, 'is_connected', lambda self: True)

        w3 = DeploymentDriver(config, settings)._connect()

        assert w3.provider.endpoint_uri == "https://goerli.example/rpc"
