"""
Deployment Package
Configuration, constructor parameters and the KipuBank deploy workflow
"""

from .errors import (
    DeploymentError,
    SigningError,
    NetworkError,
    ConfirmationTimeoutError,
    DeploymentRevertedError,
    InsufficientFundsError,
    ArtifactNotFoundError,
    VerificationError,
    InvalidAmountError,
)
from .config import NetworkConfig, DeploySettings, load_network_config, load_deploy_settings
from .parameters import DeploymentParameters, parse_ether

__all__ = [
    'DeploymentError',
    'SigningError',
    'NetworkError',
    'ConfirmationTimeoutError',
    'DeploymentRevertedError',
    'InsufficientFundsError',
    'ArtifactNotFoundError',
    'VerificationError',
    'InvalidAmountError',
    'NetworkConfig',
    'DeploySettings',
    'load_network_config',
    'load_deploy_settings',
    'DeploymentParameters',
    'parse_ether',
]
