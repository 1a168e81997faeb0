"""
rdpprovisioner - XRDP and Guacamole provisioning for Ubuntu CI hosts
"""

__version__ = "0.1.0"

from .core import Provisioner, ProvisionerError
from .models import FailurePolicy, ProvisionConfig

__all__ = ["FailurePolicy", "ProvisionConfig", "Provisioner", "ProvisionerError"]
