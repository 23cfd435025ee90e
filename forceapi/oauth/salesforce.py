import logging
import os
from urllib.parse import urljoin

from forceapi.core.exceptions import SalesforceCredentialsException
from forceapi.salesforce_api.decoder import decode_json
from forceapi.salesforce_api.transport import Transport

logger = logging.getLogger(__name__)

HTTP_HEADERS = {"Content-Type": "application/x-www-form-urlencoded"}
SANDBOX_LOGIN_URL = (
    os.environ.get("SF_SANDBOX_LOGIN_URL") or "https://test.salesforce.com"
)
PROD_LOGIN_URL = os.environ.get("SF_PROD_LOGIN_URL") or "https://login.salesforce.com"


def get_token_url(login_url=None, is_sandbox=False):
    if login_url is None:
        login_url = SANDBOX_LOGIN_URL if is_sandbox else PROD_LOGIN_URL
    return urljoin(login_url, "services/oauth2/token")


def password_session(
    client_id,
    client_secret,
    username,
    password,
    token_url=None,
    is_sandbox=False,
    transport=None,
):
    """Complete the username-password OAuth flow to obtain an access token for an org.

    :param client_id: Client Id for the connected app
    :param client_secret: Client Secret for the connected app
    :param username: Username to authenticate as
    :param password: Password, with the security token appended when the org requires one
    :param token_url: Full token endpoint; defaults to the production or sandbox login url
    """
    data = {
        "grant_type": "password",
        "client_id": client_id,
        "client_secret": client_secret,
        "username": username,
        "password": password,
    }
    token_url = token_url or get_token_url(is_sandbox=is_sandbox)
    return _request_token(data, token_url, transport)


def client_credentials_session(
    client_id, client_secret, token_url=None, is_sandbox=False, transport=None
):
    """Complete the client credentials OAuth flow to obtain an access token for an org.

    The connected app must have a run-as user configured. ``token_url`` is
    usually the org's My Domain token endpoint."""
    data = {
        "grant_type": "client_credentials",
        "client_id": client_id,
        "client_secret": client_secret,
    }
    token_url = token_url or get_token_url(is_sandbox=is_sandbox)
    return _request_token(data, token_url, transport)


def _request_token(data, token_url, transport=None):
    if transport is None:
        with Transport() as transport:
            return _request_token(data, token_url, transport)
    logger.debug(f"Requesting {data['grant_type']} token from {token_url}")
    response = transport.request("POST", token_url, headers=HTTP_HEADERS, data=data)
    if response.status_code != 200:
        raise SalesforceCredentialsException(
            f"Error retrieving access token: {response.text}"
        )

    return decode_json(response)
