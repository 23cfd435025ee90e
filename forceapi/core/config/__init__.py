from forceapi.core.config.base_config import BaseConfig
from forceapi.core.config.org_config import DEFAULT_API_VERSION, OrgConfig

__all__ = (
    "BaseConfig",
    "DEFAULT_API_VERSION",
    "OrgConfig",
)
