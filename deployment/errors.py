"""
Deployment Errors
Failure taxonomy for the deploy workflow
"""


class DeploymentError(Exception):
    """Base class for every failure that aborts a deployment"""


class SigningError(DeploymentError):
    """Signing credential missing or invalid"""


class NetworkError(DeploymentError):
    """RPC endpoint missing, unreachable, or on the wrong chain"""


class ConfirmationTimeoutError(NetworkError):
    """Transaction was submitted but no receipt arrived in time"""

    def __init__(self, tx_hash: str, timeout: float):
        self.tx_hash = tx_hash
        self.timeout = timeout
        super().__init__(
            f"No receipt for {tx_hash} after {timeout:g}s "
            f"(the transaction may still be mined later)"
        )


class DeploymentRevertedError(DeploymentError):
    """Constructor rejected the parameters or the creation tx reverted"""

    def __init__(self, message: str, tx_hash: str = None):
        self.tx_hash = tx_hash
        super().__init__(message)


class InsufficientFundsError(DeploymentError):
    """Deployer balance cannot cover the estimated deployment cost"""


class ArtifactNotFoundError(DeploymentError):
    """Compiled contract artifact is missing from the artifact cache"""


class VerificationError(DeploymentError):
    """Block explorer rejected or failed the source verification"""


class InvalidAmountError(ValueError):
    """Amount cannot be represented as a non-negative integer of wei"""
