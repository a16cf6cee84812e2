from __future__ import annotations


class OvmError(Exception):
    """Base bootstrap error."""


class ConfigurationError(OvmError):
    """Bad or unresolvable configuration/paths."""


class ProvisioningError(OvmError):
    """A directory, port or disk could not be provisioned."""


class PortExhaustedError(ProvisioningError):
    def __init__(self, preferred: int, last: int):
        super().__init__(f"no usable port in range {preferred}-{last}")
        self.preferred = preferred
        self.last = last


class CredentialError(OvmError):
    """SSH key generation or read failure."""


class ReconciliationError(OvmError):
    """Target assets could not be brought in line with the manifest."""


class BootstrapStateError(OvmError):
    """A bootstrap phase was called out of order."""
