import os
from typing import Optional

from forceapi.core.config.base_config import BaseConfig
from forceapi.core.exceptions import MissingCredentials

DEFAULT_API_VERSION = "58.0"


class OrgConfig(BaseConfig):
    """Salesforce org configuration (i.e. org credentials)"""

    access_token: str
    instance_url: str
    api_version: str
    token_type: str
    issued_at: str
    id: str
    signature: str

    defaults = {"api_version": DEFAULT_API_VERSION, "token_type": "Bearer"}

    def __init__(self, config: Optional[dict] = None, name: Optional[str] = None):
        self.name = name
        super().__init__(config)

    @classmethod
    def from_token(cls, info: dict, name: Optional[str] = None) -> "OrgConfig":
        """Build a config from an OAuth token response."""
        return cls(dict(info), name)

    @classmethod
    def from_environment(cls, environ=None, name: Optional[str] = None):
        """Build a config from SF_ACCESS_TOKEN, SF_INSTANCE_URL and SF_API_VERSION."""
        environ = os.environ if environ is None else environ
        config = {
            "access_token": environ.get("SF_ACCESS_TOKEN"),
            "instance_url": environ.get("SF_INSTANCE_URL"),
        }
        if environ.get("SF_API_VERSION"):
            config["api_version"] = environ["SF_API_VERSION"]
        return cls(config, name)

    @property
    def org_id(self):
        # The identity url ends in /ORGID/USERID
        if self.id:
            return self.id.split("/")[-2]

    def check_credentials(self):
        """Raise MissingCredentials unless both the token and the instance url are set."""
        if not self.access_token or not self.instance_url:
            org = f"Org {self.name}" if self.name else "Org"
            raise MissingCredentials(
                f"{org} is missing an access token or instance url"
            )

    def auth_headers(self) -> dict:
        return {"Authorization": f"Bearer {self.access_token}"}

    def base_url(self) -> str:
        if not self.instance_url:
            org = f"Org {self.name}" if self.name else "Org"
            raise MissingCredentials(f"{org} is missing an instance url")
        return self.instance_url.rstrip("/")

    def rest_url(self, path: str, api_version: Optional[str] = None) -> str:
        version = api_version or self.api_version
        return f"{self.base_url()}/services/data/v{version}/{path.lstrip('/')}"

    def metadata_url(self, api_version: Optional[str] = None) -> str:
        version = api_version or self.api_version
        return f"{self.base_url()}/services/Soap/m/{version}"
