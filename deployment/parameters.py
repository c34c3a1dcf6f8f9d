"""
Deployment Parameters
Constructor arguments for KipuBank, scaled from ether to wei
"""

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation, localcontext
from typing import List, Union
from web3 import Web3

from .errors import InvalidAmountError

WEI_PER_ETHER = 10**18

Amount = Union[str, int, Decimal]


def parse_ether(amount: Amount) -> int:
    """
    Convert a human-readable ether amount to wei

    Args:
        amount: Decimal amount, e.g. "100" or "0.5"

    Returns:
        Integer amount in wei ("1" -> 10**18)
    """
    if isinstance(amount, bool):
        raise InvalidAmountError(f"Invalid amount: {amount!r}")

    try:
        value = Decimal(str(amount).strip())
    except InvalidOperation:
        raise InvalidAmountError(f"Invalid amount: {amount!r}") from None

    if not value.is_finite():
        raise InvalidAmountError(f"Invalid amount: {amount!r}")
    if value < 0:
        raise InvalidAmountError(f"Amount must not be negative: {amount}")

    # uint256 needs 78 digits, more than the default context keeps
    with localcontext() as ctx:
        ctx.prec = 100
        scaled = value * WEI_PER_ETHER
    if scaled != scaled.to_integral_value():
        raise InvalidAmountError(f"Amount has more than 18 decimals: {amount}")

    try:
        return int(Web3.to_wei(value, 'ether'))
    except ValueError as e:
        raise InvalidAmountError(f"Amount out of range: {amount} ({e})") from None


@dataclass(frozen=True)
class DeploymentParameters:
    """
    KipuBank constructor arguments, both in wei

    max_withdrawal <= bank_cap is not checked here; the contract
    enforces its own limits.
    """
    bank_cap: int
    max_withdrawal: int

    @classmethod
    def from_ether(cls, bank_cap: Amount, max_withdrawal: Amount) -> "DeploymentParameters":
        return cls(
            bank_cap=parse_ether(bank_cap),
            max_withdrawal=parse_ether(max_withdrawal),
        )

    @classmethod
    def from_settings(cls, settings) -> "DeploymentParameters":
        """Build from the defaults in DeploySettings"""
        return cls.from_ether(settings.bank_cap_ether, settings.max_withdrawal_ether)

    def as_constructor_args(self) -> List[int]:
        return [self.bank_cap, self.max_withdrawal]

    def describe(self) -> str:
        return (
            f"bankCap={Web3.from_wei(self.bank_cap, 'ether')} ETH, "
            f"maxWithdrawal={Web3.from_wei(self.max_withdrawal, 'ether')} ETH"
        )
