import base64
import io
from typing import ClassVar, List, Optional
from zipfile import ZipFile

from pydantic import BaseModel

from forceapi.core.exceptions import ApexTestException, RemoteOperationFailed
from forceapi.core.utils import StrEnum
from forceapi.salesforce_api.exceptions import MetadataComponentFailure


class TestLevel(StrEnum):
    """Which Apex tests run during a deploy."""

    __test__ = False

    NO_TEST_RUN = "NoTestRun"
    RUN_SPECIFIED_TESTS = "RunSpecifiedTests"
    RUN_LOCAL_TESTS = "RunLocalTests"
    RUN_ALL_TESTS_IN_ORG = "RunAllTestsInOrg"


class DeployOptions(BaseModel):
    """Options governing a Metadata API deploy.

    They are sent as given; Salesforce decides which combinations it accepts.

    Every flag defaults to false except ``rollback_on_error`` and
    ``single_package``, which default to true: a deploy is all-or-nothing
    over a single package unless the caller opts out."""

    allow_missing_files: bool = False
    auto_update_package: bool = False
    check_only: bool = False
    ignore_warnings: bool = False
    perform_retrieve: bool = False
    purge_on_delete: bool = False
    rollback_on_error: bool = True
    single_package: bool = True
    test_level: Optional[TestLevel] = None
    run_tests: List[str] = []


class RetrieveOptions(BaseModel):
    """Options governing a Metadata API retrieve."""

    api_version: Optional[str] = None
    package_names: List[str] = []
    single_package: bool = False
    specific_files: List[str] = []
    # package.xml content; see normalize_package_manifest
    unpackaged_manifest: Optional[str] = None


class ComponentSuccess(BaseModel):
    changed: bool = False
    created: bool = False
    deleted: bool = False
    file_name: Optional[str] = None
    full_name: Optional[str] = None
    component_type: Optional[str] = None
    success: bool = True


class ComponentFailure(BaseModel):
    changed: bool = False
    created: bool = False
    deleted: bool = False
    file_name: Optional[str] = None
    full_name: Optional[str] = None
    component_type: Optional[str] = None
    problem: Optional[str] = None
    problem_type: Optional[str] = None
    line_number: Optional[int] = None
    column_number: Optional[int] = None
    success: bool = False

    @property
    def action(self) -> str:
        if self.created:
            return "Create"
        elif self.deleted:
            return "Delete"
        return "Update"

    def message(self) -> str:
        problem = self.problem or "Unknown problem"
        problem_type = self.problem_type or "Error"
        name = self.full_name or self.file_name
        if name and self.line_number:
            return (
                f"{self.action} of {self.component_type} {name}: {problem_type} "
                f"on line {self.line_number}, col {self.column_number}: {problem}"
            )
        elif name:
            return f"{self.action} of {self.component_type} {name}: {problem_type}: {problem}"
        return f"{self.action} of {self.component_type}: {problem_type}: {problem}"


class ApexTestSuccess(BaseModel):
    id: Optional[str] = None
    method_name: Optional[str] = None
    name: Optional[str] = None
    namespace: Optional[str] = None
    time: Optional[float] = None


class ApexTestFailure(BaseModel):
    id: Optional[str] = None
    message: Optional[str] = None
    method_name: Optional[str] = None
    name: Optional[str] = None
    namespace: Optional[str] = None
    stack_trace: Optional[str] = None
    time: Optional[float] = None
    type: Optional[str] = None


class CodeLocation(BaseModel):
    column: int = 0
    line: int = 0
    num_executions: int = 0
    time: float = 0.0


class CodeCoverageResult(BaseModel):
    id: Optional[str] = None
    name: Optional[str] = None
    namespace: Optional[str] = None
    num_locations: int = 0
    num_locations_not_covered: int = 0
    type: Optional[str] = None
    locations_not_covered: List[CodeLocation] = []


class RunTestResult(BaseModel):
    num_failures: int = 0
    num_tests_run: int = 0
    total_time: float = 0.0
    successes: List[ApexTestSuccess] = []
    failures: List[ApexTestFailure] = []
    code_coverage: List[CodeCoverageResult] = []


class DeployDetails(BaseModel):
    component_successes: List[ComponentSuccess] = []
    component_failures: List[ComponentFailure] = []
    run_test_result: Optional[RunTestResult] = None


class DeployOutcome(BaseModel):
    """Result of checkDeployStatus with details included."""

    id: str
    done: bool = False
    success: bool = False
    status: Optional[str] = None
    state_detail: Optional[str] = None
    check_only: bool = False
    ignore_warnings: bool = False
    rollback_on_error: bool = False
    run_tests_enabled: bool = False
    created_date: Optional[str] = None
    start_date: Optional[str] = None
    completed_date: Optional[str] = None
    error_message: Optional[str] = None
    error_status_code: Optional[str] = None
    number_component_errors: int = 0
    number_components_deployed: int = 0
    number_components_total: int = 0
    number_test_errors: int = 0
    number_tests_completed: int = 0
    number_tests_total: int = 0
    details: Optional[DeployDetails] = None

    # progress counters keyed the way the API names them
    progress_fields: ClassVar[dict] = {
        "numberComponentErrors": "number_component_errors",
        "numberComponentsDeployed": "number_components_deployed",
        "numberComponentsTotal": "number_components_total",
        "numberTestErrors": "number_test_errors",
        "numberTestsCompleted": "number_tests_completed",
        "numberTestsTotal": "number_tests_total",
    }

    @property
    def progress(self) -> dict:
        return {
            name: getattr(self, field) for name, field in self.progress_fields.items()
        }

    def test_failure_messages(self) -> List[str]:
        messages = []
        if self.details and self.details.run_test_result:
            for failure in self.details.run_test_result.failures:
                message = ["Apex Test Failure: "]
                if failure.namespace:
                    message.append(f"from namespace {failure.namespace}: ")
                if failure.stack_trace:
                    message.append(failure.stack_trace)
                messages.append("".join(message))
        return messages

    def raise_for_failure(self, status=None):
        """Raise the exception that best describes a failed deploy."""
        if self.success:
            return
        if self.details and self.details.component_failures:
            log = "\n\n".join(
                failure.message() for failure in self.details.component_failures
            )
            raise MetadataComponentFailure(log, status)
        messages = self.test_failure_messages()
        if messages:
            raise ApexTestException("\n\n".join(messages), status)
        raise RemoteOperationFailed(
            self.error_message or f"Deploy {self.id} finished with status {self.status}",
            status,
        )


class FileProperty(BaseModel):
    created_by_id: Optional[str] = None
    created_by_name: Optional[str] = None
    created_date: Optional[str] = None
    file_name: Optional[str] = None
    full_name: Optional[str] = None
    id: Optional[str] = None
    last_modified_by_id: Optional[str] = None
    last_modified_by_name: Optional[str] = None
    last_modified_date: Optional[str] = None
    manageable_state: Optional[str] = None
    namespace_prefix: Optional[str] = None
    type: Optional[str] = None


class RetrieveMessage(BaseModel):
    file_name: Optional[str] = None
    problem: Optional[str] = None


class RetrieveOutcome(BaseModel):
    """Result of checkRetrieveStatus with the zip included."""

    id: str
    done: bool = False
    success: bool = False
    status: Optional[str] = None
    error_message: Optional[str] = None
    error_status_code: Optional[str] = None
    file_properties: List[FileProperty] = []
    messages: List[RetrieveMessage] = []
    zip_file_base64: Optional[str] = None

    def zip_file(self) -> Optional[ZipFile]:
        """The retrieved archive, or None when the result carried no zip."""
        if not self.zip_file_base64:
            return None
        return ZipFile(io.BytesIO(base64.b64decode(self.zip_file_base64)), "r")

    def raise_for_failure(self, status=None):
        if self.success:
            return
        messages = [
            f"{message.file_name}: {message.problem}" for message in self.messages
        ]
        if self.error_message:
            messages.insert(0, self.error_message)
        raise RemoteOperationFailed(
            "\n".join(messages) or f"Retrieve {self.id} finished with status {self.status}",
            status,
        )
