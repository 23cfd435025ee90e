import json
import logging
from typing import Optional

from forceapi.core.config import OrgConfig
from forceapi.salesforce_api.transport import Transport

JSON_HEADERS = {"Content-Type": "application/json"}


class BaseApiClient:
    """Binds an org's credentials to a caller-owned transport.

    Holds no state between calls: every method issues one complete request."""

    def __init__(
        self,
        org_config: OrgConfig,
        transport: Transport,
        logger: Optional[logging.Logger] = None,
    ):
        self.org_config = org_config
        self.transport = transport
        self.logger = logger or logging.getLogger(self.__class__.__module__)

    def _rest_url(self, path: str) -> str:
        return self.org_config.rest_url(path)

    def _request(self, method, url, json_body=None, data=None, params=None, headers=None):
        """Send an authenticated REST request; credentials are checked before anything is sent."""
        self.org_config.check_credentials()
        request_headers = {**self.org_config.auth_headers(), **JSON_HEADERS}
        if headers:
            request_headers.update(headers)
        if json_body is not None:
            data = json.dumps(json_body)
        return self.transport.request(
            method, url, headers=request_headers, data=data, params=params
        )
