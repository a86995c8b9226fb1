"""Blue/green deployer - fans a deployment out to every foundation of an environment."""

__version__ = "0.1.0"
__author__ = "Bluegreen Deployer Team"

from bluegreen_deployer.core.config import Settings
from bluegreen_deployer.core.models import DeploymentInfo, Environment

__all__ = ["Settings", "DeploymentInfo", "Environment", "__version__"]
