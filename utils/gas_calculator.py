"""
Gas Calculator
Fee parameters and gas limits for the deployment transaction
"""

from typing import Dict
from web3 import Web3
from web3.exceptions import ContractLogicError, Web3RPCError
from loguru import logger

from deployment.errors import DeploymentError, DeploymentRevertedError


class GasCalculator:
    """
    Calculates gas limit and fee parameters

    Uses EIP-1559 fees when the latest block carries a base fee and
    falls back to legacy gasPrice otherwise. Fees are capped at
    max_gas_price_gwei; a network price already above the cap is an
    error, since a capped transaction could never be included.
    """

    def __init__(self, w3: Web3, settings):
        """
        Initialize Gas Calculator

        Args:
            w3: Web3 instance
            settings: DeploySettings
        """
        self.w3 = w3
        self.gas_limit_buffer = settings.gas_limit_buffer
        self.default_gas_limit = settings.default_gas_limit
        self.max_gas_price_gwei = settings.max_gas_price_gwei
        self.priority_fee_gwei = settings.priority_fee_gwei

    @property
    def max_fee_wei(self) -> int:
        return int(Web3.to_wei(self.max_gas_price_gwei, 'gwei'))

    def estimate_gas_limit(self, tx: Dict) -> int:
        """
        Estimate gas for tx and add the safety buffer

        A revert during estimation means the constructor rejected the
        arguments, so it is raised instead of falling back. Only node-side
        errors fall back to the default; transport errors propagate.
        """
        try:
            gas_estimate = self.w3.eth.estimate_gas(tx)
        except ContractLogicError as e:
            raise DeploymentRevertedError(f"Constructor reverted during gas estimation: {e}") from e
        except (Web3RPCError, ValueError) as e:
            logger.warning(f"Gas estimation failed: {e}, using default {self.default_gas_limit}")
            return self.default_gas_limit

        gas_limit = int(gas_estimate * self.gas_limit_buffer)
        logger.info(f"Gas estimate: {gas_estimate} (limit with buffer: {gas_limit})")
        return gas_limit

    def get_fee_params(self) -> Dict[str, int]:
        """
        Get fee fields for the transaction

        Returns:
            {'maxFeePerGas', 'maxPriorityFeePerGas'} or {'gasPrice'}
        """
        latest_block = self.w3.eth.get_block('latest')
        base_fee_wei = latest_block.get('baseFeePerGas')

        if base_fee_wei is None:
            gas_price = int(self.w3.eth.gas_price)
            self._check_cap("Gas price", gas_price)
            logger.info(f"Gas price (legacy): {Web3.from_wei(gas_price, 'gwei')} gwei")
            return {'gasPrice': gas_price}

        self._check_cap("Base fee", base_fee_wei)

        try:
            priority_fee_wei = int(self.w3.eth.max_priority_fee)
        except Exception as e:
            logger.debug(f"eth_maxPriorityFeePerGas unavailable ({e}), using configured tip")
            priority_fee_wei = int(Web3.to_wei(self.priority_fee_gwei, 'gwei'))

        # Max fee = base fee * 2 + tip (room for base fee growth)
        max_fee_wei = min((base_fee_wei * 2) + priority_fee_wei, self.max_fee_wei)
        priority_fee_wei = min(priority_fee_wei, max_fee_wei)

        logger.info(
            f"Gas fees: max {Web3.from_wei(max_fee_wei, 'gwei')} gwei, "
            f"tip {Web3.from_wei(priority_fee_wei, 'gwei')} gwei"
        )
        return {
            'maxFeePerGas': int(max_fee_wei),
            'maxPriorityFeePerGas': int(priority_fee_wei)
        }

    def _check_cap(self, label: str, price_wei: int):
        if price_wei > self.max_fee_wei:
            raise DeploymentError(
                f"{label} {Web3.from_wei(price_wei, 'gwei')} gwei is above "
                f"max_gas_price_gwei ({self.max_gas_price_gwei:g} gwei)"
            )

    @staticmethod
    def max_cost_wei(gas_limit: int, fee_params: Dict[str, int]) -> int:
        """Upper bound of the fee paid for gas_limit"""
        price = fee_params.get('maxFeePerGas', fee_params.get('gasPrice', 0))
        return gas_limit * price
