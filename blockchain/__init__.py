"""
Blockchain Interaction Package
Handles contract artifacts, transaction building, and the deployer wallet
"""

from .contract_manager import ContractManager, ContractArtifact
from .transaction_builder import TransactionBuilder
from .wallet_manager import WalletManager

__all__ = ['ContractManager', 'ContractArtifact', 'TransactionBuilder', 'WalletManager']
