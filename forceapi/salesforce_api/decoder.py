"""
Decode raw responses from every API surface into Python values

One path serves JSON, SOAP, CSV, plain text and empty bodies: check the status
against the documented success set, then parse the body. Anything that cannot
be accepted raises a classified exception holding the original response.
"""

import csv
import io
import typing as T

from lxml import etree as lxml_etree

from forceapi.core.utils import StrEnum
from forceapi.salesforce_api.exceptions import (
    DecodeFailure,
    EmptyPayload,
    InvalidSession,
    MalformedRow,
    ResourceNotFound,
    SoapFault,
    UnexpectedStatus,
)
from forceapi.utils.xml import lxml_parse_string

INVALID_SESSION_MARKER = "INVALID_SESSION_ID"


class ResponseFormat(StrEnum):
    JSON = "json"
    SOAP = "soap"
    CSV = "csv"
    TEXT = "text"
    EMPTY = "empty"


def decode_response(
    response,
    expected_status: T.Union[int, T.Iterable[int]] = 200,
    response_format: ResponseFormat = ResponseFormat.JSON,
    operation: T.Optional[str] = None,
):
    """Return the decoded body of ``response`` or raise a classified error.

    For ``ResponseFormat.SOAP`` pass the SOAP ``operation`` name; the value
    returned is the list of ``result`` elements of ``<operation>Response``."""
    if response_format == ResponseFormat.SOAP:
        return decode_soap(response, operation, expected_status)
    check_status(response, expected_status)
    if response_format == ResponseFormat.JSON:
        return decode_json(response)
    elif response_format == ResponseFormat.CSV:
        return parse_csv(decode_text(response), response)
    elif response_format == ResponseFormat.TEXT:
        return decode_text(response)
    return None


def check_status(response, expected_status):
    if isinstance(expected_status, int):
        expected_status = (expected_status,)
    if response.status_code in expected_status:
        return
    message = f"HTTP ERROR {response.status_code}: {response.text}"
    if response.status_code == 404:
        raise ResourceNotFound(message, response)
    raise UnexpectedStatus(message, response)


def decode_json(response):
    try:
        return response.json()
    except ValueError:
        raise DecodeFailure(f"Cannot decode as JSON: {response.text}", response)


def decode_text(response) -> str:
    try:
        return response.content.decode("utf-8")
    except UnicodeDecodeError as e:
        raise DecodeFailure(f"Cannot decode as UTF-8: {e}", response)


def parse_csv(text: str, response=None) -> T.List[T.Dict[str, str]]:
    """Parse a headered CSV body into one dict per row.

    A body without a header row is an EmptyPayload. A row whose column count
    differs from the header is a MalformedRow; rows are never padded or cut."""
    rows = [row for row in csv.reader(io.StringIO(text, newline="")) if row]
    if not rows:
        raise EmptyPayload("Empty CSV response", response)
    headers = rows[0]
    records = []
    for row_number, row in enumerate(rows[1:], start=2):
        if len(row) != len(headers):
            raise MalformedRow(
                f"CSV row {row_number} has {len(row)} columns, expected {len(headers)}",
                response,
                row_number=row_number,
            )
        records.append(dict(zip(headers, row)))
    return records


def decode_soap(response, operation, expected_status=200):
    """Check a SOAP response for faults and return its result elements.

    A fault in the body wins over the HTTP status: Salesforce reports most
    faults with a 500 but the body is what identifies them."""
    try:
        tree = lxml_parse_string(response.content)
    except (lxml_etree.XMLSyntaxError, ValueError):
        check_status(response, expected_status)
        raise DecodeFailure(
            f"Could not parse the SOAP response: {response.text}", response
        )

    raise_for_soap_fault(tree, response)
    check_status(response, expected_status)

    results = tree.xpath(
        "/*[local-name()='Envelope']/*[local-name()='Body']"
        "/*[local-name()=$response_tag]/*[local-name()='result']",
        response_tag=f"{operation}Response",
    )
    if not results:
        raise DecodeFailure(
            f"No result for {operation} in the SOAP response: {response.text}",
            response,
        )
    return results


def raise_for_soap_fault(tree, response):
    codes = tree.xpath("//*[local-name()='faultcode']")
    strings = tree.xpath("//*[local-name()='faultstring']")
    if not codes and not strings:
        return
    faultcode = (codes[0].text if codes else None) or ""
    faultstring = (strings[0].text if strings else None) or response.text
    if INVALID_SESSION_MARKER in faultcode or INVALID_SESSION_MARKER in faultstring:
        raise InvalidSession(faultcode, faultstring, response)
    raise SoapFault(faultcode, faultstring, response)
