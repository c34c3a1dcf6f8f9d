"""
Deployment Driver
Submits the KipuBank creation transaction and waits for confirmation
"""

import asyncio
from dataclasses import dataclass
from typing import Optional
from web3 import Web3
from web3.exceptions import TransactionNotFound, Web3RPCError
from loguru import logger

from blockchain.contract_manager import ContractArtifact, ContractManager, has_code
from blockchain.transaction_builder import TransactionBuilder
from blockchain.wallet_manager import WalletManager
from utils.gas_calculator import GasCalculator

from .config import DeploySettings, NetworkConfig
from .errors import (
    ConfirmationTimeoutError,
    DeploymentError,
    DeploymentRevertedError,
    InsufficientFundsError,
    NetworkError,
)
from .parameters import DeploymentParameters

RPC_REQUEST_TIMEOUT = 30


@dataclass(frozen=True)
class DeploymentResult:
    """Outcome of a confirmed deployment"""
    contract_name: str
    address: str
    tx_hash: str
    block_number: int
    gas_used: int
    deployer: str
    network: str
    chain_id: int
    constructor_args: str


class DeploymentDriver:
    """
    Deploys one contract instance per call to deploy()

    There is no retry and no deduplication: every call sends a new
    creation transaction and yields a new address.
    """

    def __init__(
        self,
        config: NetworkConfig,
        settings: DeploySettings,
        contract_manager: Optional[ContractManager] = None,
        w3: Optional[Web3] = None
    ):
        """
        Initialize Deployment Driver

        Args:
            config: Network configuration
            settings: Deploy settings
            contract_manager: Artifact source (default: settings.artifacts_dir)
            w3: Pre-built Web3 instance (default: HTTP provider on config.endpoint_url)
        """
        self.config = config
        self.settings = settings
        self.contract_manager = contract_manager or ContractManager(settings.artifacts_dir)
        self.w3 = w3
        self.poll_interval = settings.poll_interval
        self.state = "not started"

    def _connect(self) -> Web3:
        """Return a connected Web3 instance or raise NetworkError"""
        if self.w3 is None:
            if not self.config.endpoint_url:
                raise NetworkError(
                    f"RPC endpoint for '{self.config.network}' is not configured"
                )
            self.w3 = Web3(Web3.HTTPProvider(
                self.config.endpoint_url,
                request_kwargs={'timeout': RPC_REQUEST_TIMEOUT}
            ))

        if not self.w3.is_connected():
            raise NetworkError(f"Failed to connect to {self.config.network} RPC endpoint")

        return self.w3

    def _check_chain(self, w3: Web3) -> int:
        chain_id = w3.eth.chain_id
        if self.config.chain_id is not None and chain_id != self.config.chain_id:
            raise NetworkError(
                f"RPC endpoint is on chain {chain_id}, expected {self.config.chain_id} "
                f"for '{self.config.network}'"
            )
        return chain_id

    async def deploy(
        self,
        parameters: DeploymentParameters,
        timeout: Optional[float] = None
    ) -> DeploymentResult:
        """
        Deploy the configured contract

        Each call starts from "not started"; any failure, before or after
        submission, leaves the driver in "failed".

        Args:
            parameters: Constructor ceilings in wei
            timeout: Seconds to wait for the receipt (None waits forever)

        Returns:
            DeploymentResult
        """
        self.state = "not started"
        try:
            return await self._deploy(parameters, timeout)
        except (Exception, asyncio.CancelledError):
            self.state = "failed"
            raise

    async def _deploy(
        self,
        parameters: DeploymentParameters,
        timeout: Optional[float]
    ) -> DeploymentResult:
        # Signing capability is checked before any network traffic
        wallet = WalletManager(self.config.signing_credential)

        w3 = self._connect()
        chain_id = self._check_chain(w3)

        contract_name = self.settings.contract_name
        artifact = self.contract_manager.load_artifact(contract_name)

        logger.info(f"Deploying {artifact.contract_name} to {self.config.network} (chain {chain_id})")
        logger.info(f"Constructor: {parameters.describe()}")

        builder = TransactionBuilder(w3, wallet.address)
        gas_calculator = GasCalculator(w3, self.settings)

        tx = builder.build_deployment_tx(artifact, parameters.as_constructor_args(), chain_id)
        gas_limit = gas_calculator.estimate_gas_limit(
            {'from': tx['from'], 'data': tx['data'], 'value': 0}
        )
        fee_params = gas_calculator.get_fee_params()

        self._check_balance(w3, wallet, gas_calculator.max_cost_wei(gas_limit, fee_params))

        tx = builder.finalize(tx, builder.get_nonce(), gas_limit, fee_params)
        signed_tx = wallet.sign_transaction(tx)

        tx_hash = self._send(w3, signed_tx.raw_transaction)
        self.state = "submitted"
        logger.info(f"Transaction sent: {tx_hash}")
        logger.info("Waiting for confirmation...")

        receipt = await self.wait_for_receipt(tx_hash, timeout)

        return self._handle_receipt(w3, artifact, receipt, tx_hash, wallet, chain_id, tx['data'])

    def _check_balance(self, w3: Web3, wallet: WalletManager, max_cost_wei: int):
        balance = wallet.get_balance(w3)
        logger.info(f"Deployer balance: {w3.from_wei(balance, 'ether')} ETH")
        logger.info(f"Estimated max deployment cost: {w3.from_wei(max_cost_wei, 'ether')} ETH")

        if balance < max_cost_wei:
            raise InsufficientFundsError(
                f"Deployer {wallet.address} holds {w3.from_wei(balance, 'ether')} ETH, "
                f"needs up to {w3.from_wei(max_cost_wei, 'ether')} ETH"
            )

    def _send(self, w3: Web3, raw_transaction: bytes) -> str:
        try:
            return Web3.to_hex(w3.eth.send_raw_transaction(raw_transaction))
        except Web3RPCError as e:
            if 'insufficient funds' in str(e).lower():
                raise InsufficientFundsError(f"Node rejected transaction: {e}") from e
            raise NetworkError(f"Node rejected transaction: {e}") from e

    async def wait_for_receipt(self, tx_hash: str, timeout: Optional[float] = None):
        """
        Poll for the receipt of tx_hash

        Args:
            tx_hash: Transaction hash (0x-prefixed)
            timeout: Seconds before ConfirmationTimeoutError (None: no limit)

        Returns:
            Transaction receipt
        """
        async def _poll():
            while True:
                try:
                    return self.w3.eth.get_transaction_receipt(tx_hash)
                except TransactionNotFound:
                    await asyncio.sleep(self.poll_interval)

        if timeout is None:
            return await _poll()

        try:
            return await asyncio.wait_for(_poll(), timeout)
        except asyncio.TimeoutError:
            raise ConfirmationTimeoutError(tx_hash, timeout) from None

    def _handle_receipt(
        self,
        w3: Web3,
        artifact: ContractArtifact,
        receipt,
        tx_hash: str,
        wallet: WalletManager,
        chain_id: int,
        creation_data: str
    ) -> DeploymentResult:
        if receipt['status'] != 1:
            raise DeploymentRevertedError(
                f"Deployment transaction reverted (tx {tx_hash}, gas used {receipt['gasUsed']})",
                tx_hash=tx_hash
            )

        address = receipt['contractAddress']
        if not address or not has_code(w3, address):
            raise DeploymentError(f"No contract code at {address} after tx {tx_hash}")

        self.state = "confirmed"
        address = Web3.to_checksum_address(address)

        logger.success(f"Contract deployed at {address}")
        logger.success(f"Block: {receipt['blockNumber']}, gas used: {receipt['gasUsed']}")

        return DeploymentResult(
            contract_name=artifact.contract_name,
            address=address,
            tx_hash=tx_hash,
            block_number=receipt['blockNumber'],
            gas_used=receipt['gasUsed'],
            deployer=wallet.address,
            network=self.config.network,
            chain_id=chain_id,
            constructor_args=creation_data[len(artifact.bytecode):],
        )
