"""
Lifecycle of long-running operations: submit, poll, fetch

Bulk Query Jobs and Metadata Deploy/Retrieve share this lifecycle. The
adapters differ in endpoints and result shapes only. Nothing here loops,
sleeps or retries: the caller decides when to poll again and when to ask
for the next page.
"""

from datetime import datetime
from typing import Any, Callable, Dict, Iterator, List, NamedTuple, Optional, Union

from forceapi.core.exceptions import RemoteOperationFailed
from forceapi.core.utils import StrEnum, utcnow
from forceapi.salesforce_api.utils import BaseApiClient


class OperationKind(StrEnum):
    BULK_QUERY = "BulkQuery"
    DEPLOY = "Deploy"
    RETRIEVE = "Retrieve"


class OperationState(StrEnum):
    """Abstract state shared by every kind of operation.

    Remote labels are mapped onto these by each adapter; the label the server
    reported is kept on the status as ``remote_state``."""

    QUEUED = "Queued"
    IN_PROGRESS = "InProgress"
    CANCELING = "Canceling"
    SUCCEEDED = "Succeeded"
    FAILED = "Failed"
    ABORTED = "Aborted"


TERMINAL_STATES = frozenset(
    {OperationState.SUCCEEDED, OperationState.FAILED, OperationState.ABORTED}
)


class OperationHandle(NamedTuple):
    id: str
    kind: OperationKind
    created: datetime
    state: OperationState = OperationState.QUEUED
    done: bool = False


class OperationStatus(NamedTuple):
    """One poll's snapshot of an operation.

    While ``done`` is False, ``success`` and ``detail`` are None."""

    id: str
    kind: OperationKind
    state: OperationState
    remote_state: Optional[str]
    done: bool
    success: Optional[bool] = None
    progress: Optional[Dict[str, int]] = None
    error_message: Optional[str] = None
    error_code: Optional[str] = None
    detail: Any = None

    @property
    def failed(self) -> bool:
        return self.done and not self.success

    def raise_for_failure(self):
        """Raise RemoteOperationFailed (or a more specific subclass) for a terminal failure."""
        if not self.failed:
            return
        if self.detail is not None and hasattr(self.detail, "raise_for_failure"):
            self.detail.raise_for_failure(self)
        message = self.error_message or (
            f"{self.kind} {self.id} finished with state {self.remote_state or self.state}"
        )
        raise RemoteOperationFailed(message, self)


class ResultPage(NamedTuple):
    records: List[Any]
    locator: str = ""

    @property
    def is_last(self) -> bool:
        return not self.locator


class RawResultPage(NamedTuple):
    text: str
    locator: str = ""

    @property
    def is_last(self) -> bool:
        return not self.locator


Page = Union[ResultPage, RawResultPage]


def normalize_locator(value: Optional[str]) -> str:
    """Both a missing locator and the literal "null" mean there are no more pages."""
    if not value or value == "null":
        return ""
    return value


def iterate_pages(fetch_page: Callable[[str], Page], locator: str = "") -> Iterator[Page]:
    """Yield pages from ``fetch_page(locator)``, following locators until an empty one."""
    while True:
        page = fetch_page(locator)
        yield page
        if page.is_last:
            return
        locator = page.locator


def operation_id(handle_or_id: Union[OperationHandle, str]) -> str:
    if isinstance(handle_or_id, OperationHandle):
        return handle_or_id.id
    return handle_or_id


class BaseLongRunningOperation(BaseApiClient):
    """Common lifecycle for operations that are submitted, then polled.

    Subclasses set ``kind`` and ``state_map`` and implement ``_poll``; their
    ``submit`` methods return ``self._new_handle(remote_id)``."""

    kind: OperationKind = None
    state_map: Dict[str, OperationState] = {}

    def poll(self, handle_or_id: Union[OperationHandle, str]) -> OperationStatus:
        """Issue one status request and return the snapshot."""
        status = self._poll(operation_id(handle_or_id))
        self._log_status(status)
        return status

    def _poll(self, operation_id: str) -> OperationStatus:
        raise NotImplementedError("Subclasses must implement _poll")

    def _new_handle(self, remote_id: str) -> OperationHandle:
        handle = OperationHandle(remote_id, self.kind, utcnow())
        self._set_status(handle.state, f"{self.kind} {remote_id} submitted")
        return handle

    def _map_state(self, remote_state: Optional[str], done: bool, success: Optional[bool]):
        # done is authoritative; the label only refines it
        state = self.state_map.get(remote_state)
        if not done:
            if state is None or state in TERMINAL_STATES:
                state = OperationState.IN_PROGRESS
        elif state not in TERMINAL_STATES:
            state = OperationState.SUCCEEDED if success else OperationState.FAILED
        return state

    def _status(
        self,
        operation_id: str,
        remote_state: Optional[str],
        done: bool,
        success: Optional[bool] = None,
        **kwargs,
    ) -> OperationStatus:
        if not done:
            success = None
            kwargs.pop("detail", None)
        return OperationStatus(
            id=operation_id,
            kind=self.kind,
            state=self._map_state(remote_state, done, success),
            remote_state=remote_state,
            done=done,
            success=success,
            **kwargs,
        )

    def _log_status(self, status: OperationStatus):
        log = f"{self.kind} {status.id}"
        if status.remote_state and status.remote_state != status.state:
            log += f" ({status.remote_state})"
        if status.error_message:
            log += f": {status.error_message}"
        self._set_status(status.state, log)

    def _set_status(self, state, log=None, level=None):
        if not level:
            level = "error" if state == OperationState.FAILED else "info"
        log_method = getattr(self.logger, level)
        if log:
            log_method(f"[{state}]: {log}")
        else:
            log_method(f"[{state}]")
