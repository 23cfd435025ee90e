import logging
from typing import Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from forceapi import __version__
from forceapi.salesforce_api.exceptions import TransportFailure, TransportTimeout

logger = logging.getLogger(__name__)

CALL_OPTS_HEADER_KEY = "Sforce-Call-Options"


class Transport:
    """A long-lived HTTP transport shared by every API call.

    Wraps a single ``requests.Session``; the caller owns it and passes it to
    each adapter. Authentication headers are supplied per request by the
    adapters, so one transport can serve several orgs.

    ``timeout`` is handed to every request and is the only cancellation
    mechanism. ``max_retries`` is off by default: retry policy belongs to the
    caller, who may pass a ``urllib3`` ``Retry`` here to opt in.
    """

    def __init__(
        self,
        session: Optional[requests.Session] = None,
        timeout: Optional[float] = None,
        max_retries: Optional[Retry] = None,
        client_name: Optional[str] = None,
    ):
        self.session = session if session is not None else requests.Session()
        self.timeout = timeout
        if max_retries is not None:
            adapter = HTTPAdapter(max_retries=max_retries)
            self.session.mount("http://", adapter)
            self.session.mount("https://", adapter)
        client_name = client_name or f"forceapi/{__version__}"
        self.session.headers.setdefault(CALL_OPTS_HEADER_KEY, f"client={client_name}")

    def request(self, method, url, headers=None, data=None, params=None):
        """Send one request and return the ``requests.Response``, whatever its status."""
        logger.debug(f"{method} {url}")
        try:
            return self.session.request(
                method,
                url,
                headers=headers,
                data=data,
                params=params,
                timeout=self.timeout,
            )
        except requests.Timeout as e:
            raise TransportTimeout(f"{method} {url} timed out: {e}", cause=e) from e
        except requests.RequestException as e:
            raise TransportFailure(f"{method} {url} failed: {e}", cause=e) from e

    def close(self):
        self.session.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        self.close()
