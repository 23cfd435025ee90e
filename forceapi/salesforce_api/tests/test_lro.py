import logging
from unittest import mock

import pytest

from forceapi.core.exceptions import RemoteOperationFailed
from forceapi.core.utils import utcnow
from forceapi.salesforce_api.lro import (
    BaseLongRunningOperation,
    OperationHandle,
    OperationKind,
    OperationState,
    OperationStatus,
    RawResultPage,
    ResultPage,
    iterate_pages,
    normalize_locator,
    operation_id,
)


class DummyOperation(BaseLongRunningOperation):
    kind = OperationKind.DEPLOY
    state_map = {
        "Pending": OperationState.QUEUED,
        "InProgress": OperationState.IN_PROGRESS,
        "Succeeded": OperationState.SUCCEEDED,
        "Failed": OperationState.FAILED,
    }

    def __init__(self, org_config, remote_state, done, success=None, **kwargs):
        super().__init__(org_config, mock.Mock())
        self.remote = (remote_state, done, success, kwargs)

    def _poll(self, operation_id):
        remote_state, done, success, kwargs = self.remote
        return self._status(operation_id, remote_state, done, success, **kwargs)


class TestIteratePages:
    def test_follows_locators(self):
        pages = {
            "": ResultPage([1, 2], "L1"),
            "L1": ResultPage([3], "L2"),
            "L2": ResultPage([4], ""),
        }
        fetch = mock.Mock(side_effect=pages.get)
        result = list(iterate_pages(fetch))
        assert [page.records for page in result] == [[1, 2], [3], [4]]
        assert [c.args[0] for c in fetch.call_args_list] == ["", "L1", "L2"]

    def test_starts_from_locator(self):
        pages = {"L1": RawResultPage("a", "L2"), "L2": RawResultPage("b", "")}
        fetch = mock.Mock(side_effect=pages.get)
        result = list(iterate_pages(fetch, "L1"))
        assert fetch.call_count == 2
        assert [page.text for page in result] == ["a", "b"]
        assert result[-1].is_last

    def test_lazy(self):
        fetch = mock.Mock(return_value=ResultPage([1], "L1"))
        pages = iterate_pages(fetch)
        fetch.assert_not_called()
        next(pages)
        assert fetch.call_count == 1


@pytest.mark.parametrize(
    "value,expected", [(None, ""), ("", ""), ("null", ""), ("MTAwMDA", "MTAwMDA")]
)
def test_normalize_locator(value, expected):
    assert normalize_locator(value) == expected


def test_operation_id():
    handle = OperationHandle("0Af000000000001", OperationKind.DEPLOY, utcnow())
    assert operation_id(handle) == "0Af000000000001"
    assert operation_id("0Af000000000001") == "0Af000000000001"


class TestOperationStatus:
    def make_status(self, **kwargs):
        values = dict(
            id="750000000000001AAA",
            kind=OperationKind.BULK_QUERY,
            state=OperationState.FAILED,
            remote_state="Failed",
            done=True,
            success=False,
        )
        values.update(kwargs)
        return OperationStatus(**values)

    def test_raise_for_failure(self):
        status = self.make_status(error_message="InvalidBatch: bad soql")
        assert status.failed
        with pytest.raises(RemoteOperationFailed) as e:
            status.raise_for_failure()
        assert str(e.value) == "InvalidBatch: bad soql"
        assert e.value.status is status

    def test_raise_for_failure__default_message(self):
        with pytest.raises(RemoteOperationFailed) as e:
            self.make_status().raise_for_failure()
        assert str(e.value) == "BulkQuery 750000000000001AAA finished with state Failed"

    def test_raise_for_failure__in_progress(self):
        status = self.make_status(
            state=OperationState.IN_PROGRESS, done=False, success=None
        )
        assert not status.failed
        status.raise_for_failure()

    def test_raise_for_failure__succeeded(self):
        self.make_status(state=OperationState.SUCCEEDED, success=True).raise_for_failure()

    def test_raise_for_failure__delegates_to_detail(self):
        detail = mock.Mock()
        detail.raise_for_failure.side_effect = RemoteOperationFailed("detailed")
        status = self.make_status(detail=detail)
        with pytest.raises(RemoteOperationFailed, match="detailed"):
            status.raise_for_failure()
        detail.raise_for_failure.assert_called_once_with(status)


class TestBaseLongRunningOperation:
    def test_poll_not_implemented(self, org_config):
        operation = BaseLongRunningOperation(org_config, mock.Mock())
        with pytest.raises(NotImplementedError):
            operation.poll("x")

    def test_not_done_has_no_outcome(self, org_config):
        operation = DummyOperation(
            org_config, "InProgress", False, success=True, detail="outcome"
        )
        status = operation.poll("0Af000000000001")
        assert status.state == OperationState.IN_PROGRESS
        assert status.success is None
        assert status.detail is None

    def test_terminal_label_without_done(self, org_config):
        status = DummyOperation(org_config, "Succeeded", False).poll("x")
        assert status.state == OperationState.IN_PROGRESS
        assert not status.done

    def test_queued_label(self, org_config):
        status = DummyOperation(org_config, "Pending", False).poll("x")
        assert status.state == OperationState.QUEUED

    def test_unknown_label(self, org_config):
        assert (
            DummyOperation(org_config, "Mystery", False).poll("x").state
            == OperationState.IN_PROGRESS
        )
        assert (
            DummyOperation(org_config, "Mystery", True, True).poll("x").state
            == OperationState.SUCCEEDED
        )
        assert (
            DummyOperation(org_config, None, True, False).poll("x").state
            == OperationState.FAILED
        )

    def test_done_with_progress_label(self, org_config):
        status = DummyOperation(org_config, "InProgress", True, False).poll("x")
        assert status.state == OperationState.FAILED

    def test_repeated_polls_identical(self, org_config):
        operation = DummyOperation(org_config, "Succeeded", True, True, detail="d")
        assert operation.poll("x") == operation.poll("x")

    def test_new_handle(self, org_config, caplog):
        caplog.set_level(logging.INFO)
        handle = DummyOperation(org_config, None, False)._new_handle("0Af000000000001")
        assert handle.id == "0Af000000000001"
        assert handle.state == OperationState.QUEUED
        assert handle.done is False
        assert handle.kind == OperationKind.DEPLOY
        assert "[Queued]: Deploy 0Af000000000001 submitted" in caplog.text

    def test_failure_logged_as_error(self, org_config, caplog):
        operation = DummyOperation(
            org_config, "Failed", True, False, error_message="broken"
        )
        operation.poll("x")
        record = caplog.records[-1]
        assert record.levelname == "ERROR"
        assert record.getMessage() == "[Failed]: Deploy x: broken"
