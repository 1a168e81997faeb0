"""Domain errors for rdpprovisioner."""


class ProvisionerError(RuntimeError):
    """Raised when provisioning cannot continue safely."""
