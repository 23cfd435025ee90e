from requests import Response

from forceapi.core.config import OrgConfig

INSTANCE_URL = "https://na00.salesforce.com"
ACCESS_TOKEN = "00D000000000001!AQ0AQExampleToken"
API_VERSION = "58.0"
REST_URL = f"{INSTANCE_URL}/services/data/v{API_VERSION}"
METADATA_URL = f"{INSTANCE_URL}/services/Soap/m/{API_VERSION}"


def create_org_config(**kwargs) -> OrgConfig:
    config = {
        "access_token": ACCESS_TOKEN,
        "instance_url": INSTANCE_URL,
        "id": "https://login.salesforce.com/id/00D000000000001EAA/005000000000001AAA",
    }
    config.update(kwargs)
    return OrgConfig(config, "test")


def make_response(status_code=200, content=b"", headers=None) -> Response:
    """A requests.Response that never went over the wire."""
    if isinstance(content, str):
        content = content.encode("utf-8")
    response = Response()
    response.status_code = status_code
    response._content = content
    response.encoding = "utf-8"
    response.headers.update(headers or {})
    return response
