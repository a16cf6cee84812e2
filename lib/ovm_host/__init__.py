from .disk import create_sparse_file
from .errors import (
    BootstrapStateError,
    ConfigurationError,
    CredentialError,
    OvmError,
    PortExhaustedError,
    ProvisioningError,
    ReconciliationError,
)
from .ports import find_usable_port
from .sshkeys import generate_keypair
from .target import reconcile_target

__all__ = [
    "BootstrapStateError",
    "ConfigurationError",
    "CredentialError",
    "OvmError",
    "PortExhaustedError",
    "ProvisioningError",
    "ReconciliationError",
    "create_sparse_file",
    "find_usable_port",
    "generate_keypair",
    "reconcile_target",
]
