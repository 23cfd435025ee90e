"""
Bulk API 2.0 query jobs

Results are CSV, paged by an opaque locator returned in the Sforce-Locator
header.
"""

import functools
from typing import Dict, Iterator, Union

from forceapi.core.utils import StrEnum
from forceapi.salesforce_api.decoder import ResponseFormat, decode_response, parse_csv
from forceapi.salesforce_api.lro import (
    TERMINAL_STATES,
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

DEFAULT_MAX_RECORDS = 10_000
LOCATOR_HEADER = "Sforce-Locator"
# Both have been observed for job creation
SUBMIT_SUCCESS_STATUS = (200, 201)


class BulkQueryState(StrEnum):
    """Job states reported by the Bulk API 2.0."""

    OPEN = "Open"
    UPLOAD_COMPLETE = "UploadComplete"
    IN_PROGRESS = "InProgress"
    JOB_COMPLETE = "JobComplete"
    FAILED = "Failed"
    ABORTED = "Aborted"


class BulkQueryJob(BaseLongRunningOperation):
    """Submit, poll, page through, abort and delete Bulk API 2.0 query jobs."""

    kind = OperationKind.BULK_QUERY
    state_map = {
        BulkQueryState.OPEN.value: OperationState.QUEUED,
        BulkQueryState.UPLOAD_COMPLETE.value: OperationState.QUEUED,
        BulkQueryState.IN_PROGRESS.value: OperationState.IN_PROGRESS,
        BulkQueryState.JOB_COMPLETE.value: OperationState.SUCCEEDED,
        BulkQueryState.FAILED.value: OperationState.FAILED,
        BulkQueryState.ABORTED.value: OperationState.ABORTED,
    }
    progress_fields = ("numberRecordsProcessed", "retries", "totalProcessingTime")

    def _job_url(self, job_id=None, suffix=None):
        path = "jobs/query"
        if job_id:
            path += f"/{job_id}"
        if suffix:
            path += f"/{suffix}"
        return self._rest_url(path)

    def submit(self, soql: str) -> OperationHandle:
        response = self._request(
            "POST",
            self._job_url(),
            json_body={"operation": "query", "query": soql, "contentType": "CSV"},
        )
        job_info = decode_response(response, SUBMIT_SUCCESS_STATUS, ResponseFormat.JSON)
        self.logger.info(
            f"Created Bulk API query job {job_info['id']} on {job_info.get('object')}"
        )
        return self._new_handle(job_info["id"])

    def _poll(self, job_id: str) -> OperationStatus:
        response = self._request("GET", self._job_url(job_id))
        job_info = decode_response(response, 200, ResponseFormat.JSON)
        return self._status_from_job_info(job_info)

    def _status_from_job_info(self, job_info: dict) -> OperationStatus:
        remote_state = job_info["state"]
        state = self.state_map.get(remote_state, OperationState.IN_PROGRESS)
        done = state in TERMINAL_STATES
        progress: Dict[str, int] = {
            field: job_info[field]
            for field in self.progress_fields
            if job_info.get(field) is not None
        }
        return self._status(
            job_info["id"],
            remote_state,
            done,
            success=state == OperationState.SUCCEEDED,
            progress=progress,
            error_message=job_info.get("errorMessage"),
        )

    def _get_results(self, job_id: str, locator: str, max_records: int):
        params = {"maxRecords": max_records}
        if locator:
            params["locator"] = locator
        response = self._request(
            "GET", self._job_url(job_id, "results"), params=params
        )
        text = decode_response(response, 200, ResponseFormat.TEXT)
        return text, normalize_locator(response.headers.get(LOCATOR_HEADER)), response

    def fetch_raw(
        self,
        handle_or_id: Union[OperationHandle, str],
        locator: str = "",
        max_records: int = DEFAULT_MAX_RECORDS,
    ) -> RawResultPage:
        """Fetch one page of results as the CSV text the server sent."""
        text, next_locator, _ = self._get_results(
            operation_id(handle_or_id), locator, max_records
        )
        return RawResultPage(text, next_locator)

    def fetch(
        self,
        handle_or_id: Union[OperationHandle, str],
        locator: str = "",
        max_records: int = DEFAULT_MAX_RECORDS,
    ) -> ResultPage:
        """Fetch one page of results parsed into one dict per row."""
        text, next_locator, response = self._get_results(
            operation_id(handle_or_id), locator, max_records
        )
        return ResultPage(parse_csv(text, response), next_locator)

    def iter_pages(
        self,
        handle_or_id: Union[OperationHandle, str],
        max_records: int = DEFAULT_MAX_RECORDS,
        locator: str = "",
    ) -> Iterator[ResultPage]:
        fetch_page = functools.partial(
            self._fetch_page, operation_id(handle_or_id), max_records
        )
        return iterate_pages(fetch_page, locator)

    def _fetch_page(self, job_id, max_records, locator):
        return self.fetch(job_id, locator, max_records)

    def iter_records(
        self,
        handle_or_id: Union[OperationHandle, str],
        max_records: int = DEFAULT_MAX_RECORDS,
    ) -> Iterator[Dict[str, str]]:
        for page in self.iter_pages(handle_or_id, max_records):
            yield from page.records

    def abort(self, handle_or_id: Union[OperationHandle, str]):
        job_id = operation_id(handle_or_id)
        response = self._request(
            "PATCH",
            self._job_url(job_id),
            json_body={"state": BulkQueryState.ABORTED.value},
        )
        decode_response(response, 200, ResponseFormat.EMPTY)
        self._set_status(OperationState.ABORTED, f"{self.kind} {job_id} abort requested")

    def delete(self, handle_or_id: Union[OperationHandle, str]):
        job_id = operation_id(handle_or_id)
        response = self._request("DELETE", self._job_url(job_id))
        decode_response(response, 204, ResponseFormat.EMPTY)
        self.logger.info(f"Deleted Bulk API query job {job_id}")
