"""
Utilities Package
Gas pricing for deployment transactions
"""

from .gas_calculator import GasCalculator

__all__ = ['GasCalculator']
