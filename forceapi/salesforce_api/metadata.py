"""
python interface to the Salesforce Metadata API

Each SOAP call is one exchange with the metadata endpoint. MetadataDeploy and
MetadataRetrieve put those calls behind the shared submit/poll lifecycle.
"""

import re
from typing import Optional, Union
from xml.sax.saxutils import escape

from forceapi.core.exceptions import ForceApiUsageError
from forceapi.core.utils import utcnow, xml_bool
from forceapi.salesforce_api import soap_envelopes
from forceapi.salesforce_api.decoder import ResponseFormat, decode_response
from forceapi.salesforce_api.exceptions import DecodeFailure
from forceapi.salesforce_api.lro import (
    BaseLongRunningOperation,
    OperationHandle,
    OperationKind,
    OperationState,
    OperationStatus,
    ResultPage,
    operation_id,
)
from forceapi.salesforce_api.metadata_models import (
    ApexTestFailure,
    ApexTestSuccess,
    CodeCoverageResult,
    CodeLocation,
    ComponentFailure,
    ComponentSuccess,
    DeployDetails,
    DeployOptions,
    DeployOutcome,
    FileProperty,
    RetrieveMessage,
    RetrieveOptions,
    RetrieveOutcome,
    RunTestResult,
)
from forceapi.salesforce_api.utils import BaseApiClient
from forceapi.utils.xml import child_text, children_as_dict, find_all

SOAP_HEADERS = {"Content-Type": "text/xml; charset=UTF-8", "SOAPAction": '""'}

DEPLOY_RESULT_TAGS = (
    "checkOnly",
    "completedDate",
    "createdDate",
    "done",
    "errorMessage",
    "errorStatusCode",
    "id",
    "ignoreWarnings",
    "numberComponentErrors",
    "numberComponentsDeployed",
    "numberComponentsTotal",
    "numberTestErrors",
    "numberTestsCompleted",
    "numberTestsTotal",
    "rollbackOnError",
    "runTestsEnabled",
    "startDate",
    "stateDetail",
    "status",
    "success",
)
COMPONENT_TAGS = (
    "changed",
    "columnNumber",
    "componentType",
    "created",
    "deleted",
    "fileName",
    "fullName",
    "lineNumber",
    "problem",
    "problemType",
    "success",
)
RUN_TEST_RESULT_TAGS = ("numFailures", "numTestsRun", "totalTime")
APEX_TEST_TAGS = (
    "id",
    "message",
    "methodName",
    "name",
    "namespace",
    "stackTrace",
    "time",
    "type",
)
CODE_COVERAGE_TAGS = (
    "id",
    "name",
    "namespace",
    "numLocations",
    "numLocationsNotCovered",
    "type",
)
CODE_LOCATION_TAGS = ("column", "line", "numExecutions", "time")
RETRIEVE_RESULT_TAGS = (
    "done",
    "errorMessage",
    "errorStatusCode",
    "id",
    "status",
    "success",
)
FILE_PROPERTY_TAGS = (
    "createdById",
    "createdByName",
    "createdDate",
    "fileName",
    "fullName",
    "id",
    "lastModifiedById",
    "lastModifiedByName",
    "lastModifiedDate",
    "manageableState",
    "namespacePrefix",
    "type",
)
RETRIEVE_MESSAGE_TAGS = ("fileName", "problem")

_CAMEL_CASE_BOUNDARY = re.compile(r"(?<!^)(?=[A-Z])")


def snake_case(name: str) -> str:
    return _CAMEL_CASE_BOUNDARY.sub("_", name).lower()


def _fields(element, tags) -> dict:
    return {
        snake_case(tag): value for tag, value in children_as_dict(element, tags).items()
    }


def normalize_package_manifest(manifest: Optional[str]) -> str:
    """Reduce a package.xml document to the content of its <Package> element.

    The retrieve request embeds the manifest's types and version directly, so
    the XML declaration and the outer element are dropped. A namespace prefix
    on the root is dropped from the inner elements too, since its declaration
    goes with the root."""
    manifest = (manifest or "").strip()
    manifest = re.sub(r"^<\?xml.*?\?>", "", manifest, count=1, flags=re.DOTALL)
    manifest = manifest.strip()
    match = re.search(
        r"<(?:(\w+):)?Package\b[^>]*>(.*)</(?:\w+:)?Package>", manifest, flags=re.DOTALL
    )
    if match:
        prefix, manifest = match.group(1), match.group(2).strip()
        if prefix:
            manifest = re.sub(rf"<(/?){prefix}:", r"<\1", manifest)
    return manifest


def parse_deploy_result(result) -> DeployOutcome:
    values = _fields(result, DEPLOY_RESULT_TAGS)
    details = find_all(result, "details")
    if details:
        values["details"] = _parse_deploy_details(details[0])
    return DeployOutcome(**values)


def _parse_deploy_details(details) -> DeployDetails:
    run_test_result = find_all(details, "runTestResult")
    return DeployDetails(
        component_successes=[
            ComponentSuccess(**_fields(component, COMPONENT_TAGS))
            for component in find_all(details, "componentSuccesses")
        ],
        component_failures=[
            ComponentFailure(**_fields(component, COMPONENT_TAGS))
            for component in find_all(details, "componentFailures")
        ],
        run_test_result=_parse_run_test_result(run_test_result[0])
        if run_test_result
        else None,
    )


def _parse_run_test_result(element) -> RunTestResult:
    code_coverage = []
    for coverage in find_all(element, "codeCoverage"):
        code_coverage.append(
            CodeCoverageResult(
                locations_not_covered=[
                    CodeLocation(**_fields(location, CODE_LOCATION_TAGS))
                    for location in find_all(coverage, "locationsNotCovered")
                ],
                **_fields(coverage, CODE_COVERAGE_TAGS),
            )
        )
    return RunTestResult(
        successes=[
            ApexTestSuccess(**_fields(success, APEX_TEST_TAGS))
            for success in find_all(element, "successes")
        ],
        failures=[
            ApexTestFailure(**_fields(failure, APEX_TEST_TAGS))
            for failure in find_all(element, "failures")
        ],
        code_coverage=code_coverage,
        **_fields(element, RUN_TEST_RESULT_TAGS),
    )


def parse_retrieve_result(result) -> RetrieveOutcome:
    values = _fields(result, RETRIEVE_RESULT_TAGS)
    zip_file = child_text(result, "zipFile")
    if zip_file:
        values["zip_file_base64"] = zip_file.strip()
    return RetrieveOutcome(
        file_properties=[
            FileProperty(**_fields(file_property, FILE_PROPERTY_TAGS))
            for file_property in find_all(result, "fileProperties")
        ],
        messages=[
            RetrieveMessage(**_fields(message, RETRIEVE_MESSAGE_TAGS))
            for message in find_all(result, "messages")
        ],
        **values,
    )


class BaseMetadataApiCall(BaseApiClient):
    """One Metadata API SOAP call.

    Subclasses name the ``operation`` and supply the ``soap_envelope``
    template; calling the instance sends it and returns the processed
    result."""

    soap_envelope = None
    operation = None

    def __init__(self, org_config, transport, api_version=None, logger=None):
        super(BaseMetadataApiCall, self).__init__(org_config, transport, logger)
        self.api_version = api_version or org_config.api_version

    def __call__(self):
        envelope = self._build_envelope()
        response = self._call_mdapi(envelope)
        results = decode_response(response, 200, ResponseFormat.SOAP, self.operation)
        try:
            return self._process_response(results[0])
        except ValueError as e:
            raise DecodeFailure(
                f"Could not process MDAPI response: {str(e)}", response
            ) from e

    def _build_envelope(self):
        raise NotImplementedError("Subclasses must implement _build_envelope")

    def _call_mdapi(self, envelope):
        self.org_config.check_credentials()
        # Insert the session id
        auth_envelope = envelope.replace(
            "###SESSION_ID###", escape(self.org_config.access_token)
        )
        return self.transport.request(
            "POST",
            self.org_config.metadata_url(self.api_version),
            headers=dict(SOAP_HEADERS),
            data=auth_envelope.encode("utf-8"),
        )

    def _process_response(self, result):
        return result


class ApiDeploy(BaseMetadataApiCall):
    soap_envelope = soap_envelopes.DEPLOY
    operation = "deploy"

    def __init__(
        self,
        org_config,
        transport,
        package_zip: str,
        options: Optional[DeployOptions] = None,
        api_version=None,
        logger=None,
    ):
        super(ApiDeploy, self).__init__(org_config, transport, api_version, logger)
        if not package_zip:
            raise ForceApiUsageError("Package zip should not be empty")
        self.package_zip = package_zip
        self.options = options or DeployOptions()

    def _build_envelope(self):
        options = self.options
        test_level = (
            f"<testLevel>{options.test_level}</testLevel>" if options.test_level else ""
        )
        run_tests = "\n".join(
            f"<runTests>{escape(name)}</runTests>" for name in options.run_tests
        )
        return self.soap_envelope.format(
            package_zip=self.package_zip,
            allow_missing_files=xml_bool(options.allow_missing_files),
            auto_update_package=xml_bool(options.auto_update_package),
            check_only=xml_bool(options.check_only),
            ignore_warnings=xml_bool(options.ignore_warnings),
            perform_retrieve=xml_bool(options.perform_retrieve),
            purge_on_delete=xml_bool(options.purge_on_delete),
            rollback_on_error=xml_bool(options.rollback_on_error),
            run_tests=run_tests,
            single_package=xml_bool(options.single_package),
            test_level=test_level,
        )

    def _process_response(self, result):
        deploy_id = child_text(result, "id")
        if not deploy_id:
            raise ValueError("No id in the deploy response")
        return deploy_id


class ApiCheckDeployStatus(BaseMetadataApiCall):
    soap_envelope = soap_envelopes.CHECK_DEPLOY_STATUS
    operation = "checkDeployStatus"

    def __init__(self, org_config, transport, process_id, api_version=None, logger=None):
        super(ApiCheckDeployStatus, self).__init__(
            org_config, transport, api_version, logger
        )
        self.process_id = process_id

    def _build_envelope(self):
        return self.soap_envelope.format(process_id=escape(self.process_id))

    def _process_response(self, result) -> DeployOutcome:
        return parse_deploy_result(result)


class ApiCancelDeploy(ApiCheckDeployStatus):
    soap_envelope = soap_envelopes.CANCEL_DEPLOY
    operation = "cancelDeploy"

    def _process_response(self, result) -> dict:
        return {
            "id": child_text(result, "id") or self.process_id,
            "done": child_text(result, "done") == "true",
        }


class ApiRetrieve(BaseMetadataApiCall):
    soap_envelope = soap_envelopes.RETRIEVE
    operation = "retrieve"

    def __init__(
        self,
        org_config,
        transport,
        options: Optional[RetrieveOptions] = None,
        api_version=None,
        logger=None,
    ):
        options = options or RetrieveOptions()
        super(ApiRetrieve, self).__init__(
            org_config, transport, options.api_version or api_version, logger
        )
        self.options = options

    def _build_envelope(self):
        options = self.options
        package_names = "\n".join(
            f"<packageNames>{escape(name)}</packageNames>"
            for name in options.package_names
        )
        specific_files = "\n".join(
            f"<specificFiles>{escape(path)}</specificFiles>"
            for path in options.specific_files
        )
        unpackaged = (
            f"<unpackaged>{normalize_package_manifest(options.unpackaged_manifest)}</unpackaged>"
            if options.unpackaged_manifest
            else ""
        )
        return self.soap_envelope.format(
            api_version=self.api_version,
            package_names=package_names,
            single_package=xml_bool(options.single_package),
            specific_files=specific_files,
            unpackaged=unpackaged,
        )

    def _process_response(self, result):
        retrieve_id = child_text(result, "id")
        if not retrieve_id:
            raise ValueError("No id in the retrieve response")
        return retrieve_id


class ApiCheckRetrieveStatus(ApiCheckDeployStatus):
    soap_envelope = soap_envelopes.CHECK_RETRIEVE_STATUS
    operation = "checkRetrieveStatus"

    def _process_response(self, result) -> RetrieveOutcome:
        return parse_retrieve_result(result)


class BaseMetadataOperation(BaseLongRunningOperation):
    def __init__(self, org_config, transport, api_version=None, logger=None):
        super(BaseMetadataOperation, self).__init__(org_config, transport, logger)
        self.api_version = api_version

    def _api_call(self, api_class, *args, **kwargs):
        api = api_class(
            self.org_config,
            self.transport,
            *args,
            api_version=self.api_version,
            logger=self.logger,
            **kwargs,
        )
        return api()


class MetadataDeploy(BaseMetadataOperation):
    """Deploy a base64 encoded package zip and follow it to completion."""

    kind = OperationKind.DEPLOY
    state_map = {
        "Pending": OperationState.QUEUED,
        "InProgress": OperationState.IN_PROGRESS,
        "Succeeded": OperationState.SUCCEEDED,
        "SucceededPartial": OperationState.SUCCEEDED,
        "Failed": OperationState.FAILED,
        "Canceling": OperationState.CANCELING,
        "Canceled": OperationState.ABORTED,
    }

    def submit(
        self, zip_base64: str, options: Optional[DeployOptions] = None
    ) -> OperationHandle:
        deploy_id = self._api_call(ApiDeploy, zip_base64, options)
        return self._new_handle(deploy_id)

    def _poll(self, deploy_id: str) -> OperationStatus:
        outcome = self._api_call(ApiCheckDeployStatus, deploy_id)
        return self._status(
            outcome.id,
            outcome.status,
            outcome.done,
            success=outcome.success,
            progress=outcome.progress,
            error_message=outcome.error_message,
            error_code=outcome.error_status_code,
            detail=outcome,
        )

    def _log_status(self, status: OperationStatus):
        super(MetadataDeploy, self)._log_status(status)
        if not status.done and status.progress:
            self.logger.debug(
                f"{self.kind} {status.id}: "
                f"{status.progress['numberComponentsDeployed']} of "
                f"{status.progress['numberComponentsTotal']} components deployed"
            )

    def cancel(self, handle_or_id: Union[OperationHandle, str]) -> OperationHandle:
        """Request cancellation; the deploy reaches Canceled on a later poll."""
        deploy_id = operation_id(handle_or_id)
        result = self._api_call(ApiCancelDeploy, deploy_id)
        state = OperationState.ABORTED if result["done"] else OperationState.CANCELING
        self._set_status(state, f"{self.kind} {deploy_id} cancel requested")
        created = (
            handle_or_id.created
            if isinstance(handle_or_id, OperationHandle)
            else utcnow()
        )
        return OperationHandle(result["id"], self.kind, created, state, result["done"])


class MetadataRetrieve(BaseMetadataOperation):
    """Retrieve metadata as a zip, described by RetrieveOptions."""

    kind = OperationKind.RETRIEVE
    state_map = {
        "Pending": OperationState.QUEUED,
        "InProgress": OperationState.IN_PROGRESS,
        "Succeeded": OperationState.SUCCEEDED,
        "Failed": OperationState.FAILED,
    }

    def submit(self, options: Optional[RetrieveOptions] = None) -> OperationHandle:
        retrieve_id = self._api_call(ApiRetrieve, options)
        return self._new_handle(retrieve_id)

    def _poll(self, retrieve_id: str) -> OperationStatus:
        outcome = self._api_call(ApiCheckRetrieveStatus, retrieve_id)
        return self._status(
            outcome.id,
            outcome.status,
            outcome.done,
            success=outcome.success,
            error_message=outcome.error_message,
            error_code=outcome.error_status_code,
            detail=outcome,
        )

    def fetch(self, status: OperationStatus) -> ResultPage:
        """The retrieved file properties, read off a terminal status as a single page."""
        if not status.done or status.detail is None:
            raise ForceApiUsageError(
                f"{self.kind} {status.id} is not done; poll until it is before fetching"
            )
        return ResultPage(list(status.detail.file_properties), "")
