"""
REST and Tooling API endpoints

Every method is one request, decoded with the documented success status.
"""

from typing import Any, Dict, Iterable, Iterator, List, NamedTuple, Optional

from pydantic import BaseModel

from forceapi.salesforce_api.decoder import ResponseFormat, decode_response
from forceapi.salesforce_api.utils import BaseApiClient


class QueryResult(NamedTuple):
    total_size: int
    done: bool
    records: List[Dict[str, Any]]
    next_records_url: Optional[str] = None

    @classmethod
    def from_api(cls, data: dict) -> "QueryResult":
        return cls(
            data.get("totalSize", 0),
            data.get("done", True),
            data.get("records", []),
            data.get("nextRecordsUrl"),
        )


class SaveResult(NamedTuple):
    id: Optional[str]
    success: bool
    errors: List[Any]

    @classmethod
    def from_api(cls, data: dict) -> "SaveResult":
        return cls(data.get("id"), data.get("success", False), data.get("errors", []))


class CustomField(BaseModel):
    """A custom field to create through the Tooling API.

    ``full_name`` is qualified by its object, e.g. ``Account.Region__c``."""

    full_name: str
    label: str
    type: str
    length: Optional[int] = None

    def as_payload(self) -> dict:
        metadata = {"label": self.label, "type": self.type}
        if self.length:
            metadata["length"] = self.length
        return {"FullName": self.full_name, "Metadata": metadata}


class RestApi(BaseApiClient):
    # Salesforce has answered composite updates with both
    COMPOSITE_UPDATE_SUCCESS_STATUS = (200, 204)

    def _get_json(self, url, params=None):
        response = self._request("GET", url, params=params)
        return decode_response(response, 200, ResponseFormat.JSON)

    # Query

    def query(self, soql: str) -> QueryResult:
        return QueryResult.from_api(self._get_json(self._rest_url("query/"), {"q": soql}))

    def query_more(self, next_records_url: str) -> QueryResult:
        url = self.org_config.base_url() + next_records_url
        return QueryResult.from_api(self._get_json(url))

    def query_all(self, soql: str) -> Iterator[Dict[str, Any]]:
        """Yield every record of ``soql``, following nextRecordsUrl."""
        result = self.query(soql)
        yield from result.records
        while not result.done and result.next_records_url:
            result = self.query_more(result.next_records_url)
            yield from result.records

    # sObjects

    def create_record(self, sobject: str, record: Dict[str, Any]) -> SaveResult:
        response = self._request(
            "POST", self._rest_url(f"sobjects/{sobject}/"), json_body=record
        )
        return SaveResult.from_api(decode_response(response, 201, ResponseFormat.JSON))

    def get_record(self, sobject: str, record_id: str) -> Dict[str, Any]:
        return self._get_json(self._rest_url(f"sobjects/{sobject}/{record_id}"))

    def update_record(self, sobject: str, record_id: str, updates: Dict[str, Any]):
        response = self._request(
            "PATCH", self._rest_url(f"sobjects/{sobject}/{record_id}"), json_body=updates
        )
        decode_response(response, 204, ResponseFormat.EMPTY)

    def delete_record(self, sobject: str, record_id: str):
        response = self._request(
            "DELETE", self._rest_url(f"sobjects/{sobject}/{record_id}")
        )
        decode_response(response, 204, ResponseFormat.EMPTY)

    def describe_sobject(self, sobject: str) -> Dict[str, Any]:
        return self._get_json(self._rest_url(f"sobjects/{sobject}/describe"))

    # Composite

    def _typed_records(self, sobject, records):
        return [{**record, "attributes": {"type": sobject}} for record in records]

    def create_records(
        self, sobject: str, records: Iterable[Dict[str, Any]]
    ) -> List[SaveResult]:
        """Create up to 200 records in one all-or-none request."""
        response = self._request(
            "POST",
            self._rest_url("composite/sobjects"),
            json_body={
                "allOrNone": True,
                "records": self._typed_records(sobject, records),
            },
        )
        results = decode_response(response, 201, ResponseFormat.JSON)
        return [SaveResult.from_api(result) for result in results]

    def update_records(self, sobject: str, records: Iterable[Dict[str, Any]]):
        """Update up to 200 records in one all-or-none request; each needs an Id."""
        response = self._request(
            "PATCH",
            self._rest_url("composite/sobjects"),
            json_body={
                "allOrNone": True,
                "records": self._typed_records(sobject, records),
            },
        )
        decode_response(
            response, self.COMPOSITE_UPDATE_SUCCESS_STATUS, ResponseFormat.EMPTY
        )

    def delete_records(self, sobject: str, record_ids: Iterable[str]) -> Dict[str, Any]:
        api_version = self.org_config.api_version
        composite_request = [
            {
                "method": "DELETE",
                "url": f"/services/data/v{api_version}/sobjects/{sobject}/{record_id}",
                "referenceId": record_id,
            }
            for record_id in record_ids
        ]
        response = self._request(
            "POST",
            self._rest_url("composite"),
            json_body={"allOrNone": True, "compositeRequest": composite_request},
        )
        return decode_response(response, 200, ResponseFormat.JSON)

    # Org information

    def get_record_counts(self, sobjects: Iterable[str]) -> Dict[str, Any]:
        return self._get_json(
            self._rest_url("limits/recordCount"), {"sObjects": ",".join(sobjects)}
        )

    def get_limits(self) -> Dict[str, Any]:
        return self._get_json(self._rest_url("limits"))

    # Tooling

    def tooling_query(self, soql: str) -> QueryResult:
        return QueryResult.from_api(
            self._get_json(self._rest_url("tooling/query/"), {"q": soql})
        )

    def create_custom_field(self, field: CustomField) -> Dict[str, Any]:
        response = self._request(
            "POST",
            self._rest_url("tooling/sobjects/CustomField"),
            json_body=field.as_payload(),
        )
        result = decode_response(response, 201, ResponseFormat.JSON)
        self.logger.info(f"Created custom field {field.full_name}")
        return result
