from unittest import mock

from pytest import fixture

from forceapi.salesforce_api.transport import Transport
from forceapi.tests.util import create_org_config


@fixture(scope="session", autouse=True)
def mock_sleep():
    """Patch time.sleep to avoid delays in unit tests"""
    with mock.patch("time.sleep"):
        yield


@fixture
def org_config():
    return create_org_config()


@fixture
def transport():
    with Transport() as transport:
        yield transport
