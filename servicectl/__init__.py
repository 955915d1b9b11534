"""
servicectl - Backing service provisioner

Launches backing services (postgres, mysql) as containerized apps on the
orchestration platform and publishes connection descriptors to the blob store.
"""

__version__ = "0.1.0"
__author__ = "Platform Tooling Team"


__all__ = ["ServicectlConfig", "load_config", "get_servicectl_home"]

from .config import ServicectlConfig, load_config, get_servicectl_home
