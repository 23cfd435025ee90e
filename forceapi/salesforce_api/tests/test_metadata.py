import base64
import io
import zipfile

import pytest
import responses

from forceapi.core.config import OrgConfig
from forceapi.core.exceptions import (
    ApexTestException,
    ForceApiUsageError,
    MissingCredentials,
    RemoteOperationFailed,
)
from forceapi.salesforce_api.exceptions import (
    DecodeFailure,
    InvalidSession,
    MetadataComponentFailure,
    SoapFault,
)
from forceapi.salesforce_api.lro import OperationKind, OperationState, OperationStatus
from forceapi.salesforce_api.metadata import (
    ApiDeploy,
    ApiRetrieve,
    MetadataDeploy,
    MetadataRetrieve,
    normalize_package_manifest,
    snake_case,
)
from forceapi.salesforce_api.metadata_models import (
    DeployOptions,
    RetrieveOptions,
    TestLevel,
)
from forceapi.salesforce_api.tests.metadata_test_strings import (
    async_result,
    cancel_deploy_result,
    deploy_status_canceled,
    deploy_status_component_failure,
    deploy_status_in_progress,
    deploy_status_succeeded,
    deploy_status_test_failure,
    fault_envelope,
    result_envelope,
    retrieve_status_in_progress,
    retrieve_status_succeeded,
    retrieve_status_with_messages,
)
from forceapi.tests.util import ACCESS_TOKEN, INSTANCE_URL, METADATA_URL

DEPLOY_ID = "0Af000000000001AAA"
RETRIEVE_ID = "09S000000000001AAA"
PACKAGE_ZIP = base64.b64encode(b"PK\x05\x06" + b"\x00" * 18).decode("ascii")

MANIFEST_BODY = """<types>
        <members>Foo</members>
        <name>ApexClass</name>
    </types>
    <version>58.0</version>"""
MANIFEST = f"""<?xml version="1.0" encoding="UTF-8"?>
<Package xmlns="http://soap.sforce.com/2006/04/metadata">
    {MANIFEST_BODY}
</Package>
"""


def add_soap_result(operation, result, status=200, url=METADATA_URL):
    responses.add(
        responses.POST,
        url,
        body=result_envelope.format(operation=operation, result=result),
        status=status,
        content_type="text/xml",
    )


def request_body(index):
    return responses.calls[index].request.body.decode("utf-8")


def build_zip(files):
    zip_bytes = io.BytesIO()
    with zipfile.ZipFile(zip_bytes, "w") as zf:
        for name, content in files.items():
            zf.writestr(name, content)
    return base64.b64encode(zip_bytes.getvalue()).decode("ascii")


@pytest.fixture
def deploy(org_config, transport):
    return MetadataDeploy(org_config, transport)


@pytest.fixture
def retrieve(org_config, transport):
    return MetadataRetrieve(org_config, transport)


class TestNormalizePackageManifest:
    def test_strips_declaration_and_package(self):
        assert normalize_package_manifest(MANIFEST) == MANIFEST_BODY

    def test_exact_body(self):
        manifest = '<?xml version="1.0"?>\n<Package xmlns="x">\n  BODY \n</Package>\n'
        assert normalize_package_manifest(manifest) == "BODY"

    def test_namespace_prefix(self):
        manifest = (
            '<?xml version="1.0" encoding="UTF-8"?>\n'
            '<md:Package xmlns:md="http://soap.sforce.com/2006/04/metadata">\n'
            "  <md:types><md:members>*</md:members><md:name>ApexClass</md:name></md:types>\n"
            "  <md:version>58.0</md:version>\n"
            "</md:Package>\n"
        )
        assert normalize_package_manifest(manifest) == (
            "<types><members>*</members><name>ApexClass</name></types>\n"
            "  <version>58.0</version>"
        )

    def test_without_declaration(self):
        assert normalize_package_manifest("<Package>BODY</Package>") == "BODY"

    def test_already_inner_content(self):
        assert normalize_package_manifest(f"  {MANIFEST_BODY}\n") == MANIFEST_BODY

    def test_empty(self):
        assert normalize_package_manifest(None) == ""


def test_snake_case():
    assert snake_case("numberComponentsDeployed") == "number_components_deployed"
    assert snake_case("id") == "id"


class TestMetadataDeploy:
    @responses.activate
    def test_check_only_deploy_failure_end_to_end(self, deploy):
        add_soap_result("deploy", async_result.format(process_id=DEPLOY_ID))
        add_soap_result(
            "checkDeployStatus", deploy_status_in_progress.format(process_id=DEPLOY_ID)
        )
        add_soap_result(
            "checkDeployStatus",
            deploy_status_component_failure.format(process_id=DEPLOY_ID),
        )

        handle = deploy.submit(PACKAGE_ZIP, DeployOptions(check_only=True))
        assert handle.id == DEPLOY_ID
        assert handle.kind == OperationKind.DEPLOY
        assert handle.state == OperationState.QUEUED
        assert handle.done is False

        status = deploy.poll(handle)
        assert status.state == OperationState.IN_PROGRESS
        assert status.done is False
        assert status.success is None
        assert status.detail is None
        assert status.progress["numberComponentsDeployed"] == 1
        assert status.progress["numberComponentsTotal"] == 3

        status = deploy.poll(handle)
        assert status.state == OperationState.FAILED
        assert status.remote_state == "Failed"
        assert status.done is True
        assert status.success is False
        outcome = status.detail
        assert outcome.check_only is True
        assert outcome.number_component_errors == 1
        failure = outcome.details.component_failures[0]
        assert failure.problem == "Invalid syntax at line 5"
        assert failure.line_number == 5
        assert failure.column_number == 12
        assert failure.component_type == "ApexClass"
        assert outcome.details.component_successes[0].full_name == "Bar"

        with pytest.raises(MetadataComponentFailure) as e:
            status.raise_for_failure()
        assert str(e.value) == (
            "Update of ApexClass Foo: Error on line 5, col 12: Invalid syntax at line 5"
        )
        assert e.value.status is status

        assert len(responses.calls) == 3
        request = responses.calls[0].request
        assert request.headers["SOAPAction"] == '""'
        assert request.headers["Content-Type"] == "text/xml; charset=UTF-8"
        body = request_body(0)
        assert f"<sessionId>{ACCESS_TOKEN}</sessionId>" in body
        assert "<checkOnly>true</checkOnly>" in body
        assert f"<ZipFile>{PACKAGE_ZIP}</ZipFile>" in body
        assert "<includeDetails>true</includeDetails>" in request_body(1)
        assert f"<asyncProcessId>{DEPLOY_ID}</asyncProcessId>" in request_body(2)

    @responses.activate
    def test_submit__missing_credentials(self, transport):
        org_config = OrgConfig({"instance_url": INSTANCE_URL})
        with pytest.raises(MissingCredentials):
            MetadataDeploy(org_config, transport).submit(PACKAGE_ZIP)
        assert len(responses.calls) == 0

    def test_submit__empty_zip(self, deploy):
        with pytest.raises(ForceApiUsageError):
            deploy.submit("")

    @responses.activate
    def test_submit__api_version_override(self, org_config, transport):
        url = f"{INSTANCE_URL}/services/Soap/m/60.0"
        add_soap_result("deploy", async_result.format(process_id=DEPLOY_ID), url=url)
        MetadataDeploy(org_config, transport, api_version="60.0").submit(PACKAGE_ZIP)
        assert responses.calls[0].request.url == url

    @responses.activate
    def test_submit__invalid_session(self, deploy):
        responses.add(
            responses.POST,
            METADATA_URL,
            body=fault_envelope.format(
                faultcode="sf:INVALID_SESSION_ID",
                faultstring="INVALID_SESSION_ID: Invalid Session ID found in SessionHeader",
            ),
            status=500,
        )
        with pytest.raises(InvalidSession):
            deploy.submit(PACKAGE_ZIP)

    @responses.activate
    def test_submit__missing_id(self, deploy):
        add_soap_result("deploy", "<done>false</done>")
        with pytest.raises(DecodeFailure, match="Could not process MDAPI response"):
            deploy.submit(PACKAGE_ZIP)

    @responses.activate
    def test_poll__unknown_id(self, deploy):
        responses.add(
            responses.POST,
            METADATA_URL,
            body=fault_envelope.format(
                faultcode="sf:INVALID_CROSS_REFERENCE_KEY",
                faultstring="invalid cross reference id",
            ),
            status=500,
        )
        with pytest.raises(SoapFault) as e:
            deploy.poll("0Af000000000000AAA")
        assert e.value.faultcode == "sf:INVALID_CROSS_REFERENCE_KEY"

    @responses.activate
    def test_poll__succeeded(self, deploy):
        add_soap_result(
            "checkDeployStatus", deploy_status_succeeded.format(process_id=DEPLOY_ID)
        )
        status = deploy.poll(DEPLOY_ID)
        assert status.state == OperationState.SUCCEEDED
        assert status.success is True
        status.raise_for_failure()
        assert status.detail.details.component_successes[0].created is True
        assert status == deploy.poll(DEPLOY_ID)

    @responses.activate
    def test_poll__test_failure(self, deploy):
        add_soap_result(
            "checkDeployStatus", deploy_status_test_failure.format(process_id=DEPLOY_ID)
        )
        status = deploy.poll(DEPLOY_ID)
        assert status.state == OperationState.FAILED
        assert status.error_message == "1 test failure"
        run_test_result = status.detail.details.run_test_result
        assert run_test_result.num_tests_run == 2
        assert run_test_result.num_failures == 1
        assert run_test_result.total_time == 20.0
        assert run_test_result.successes[0].method_name == "testBar"
        assert run_test_result.failures[0].message == (
            "System.AssertException: Assertion Failed"
        )
        coverage = run_test_result.code_coverage[0]
        assert coverage.num_locations == 10
        assert coverage.num_locations_not_covered == 1
        assert coverage.locations_not_covered[0].line == 7

        with pytest.raises(ApexTestException) as e:
            status.raise_for_failure()
        assert str(e.value) == (
            "Apex Test Failure: from namespace ns: "
            "Class.ns.FooTest.testFoo: line 3, column 1"
        )

    @responses.activate
    def test_cancel(self, deploy):
        add_soap_result(
            "cancelDeploy", cancel_deploy_result.format(done="false", process_id=DEPLOY_ID)
        )
        add_soap_result(
            "checkDeployStatus", deploy_status_canceled.format(process_id=DEPLOY_ID)
        )
        handle = deploy.cancel(DEPLOY_ID)
        assert handle.id == DEPLOY_ID
        assert handle.state == OperationState.CANCELING
        assert handle.done is False
        assert "<cancelDeploy" in request_body(0)

        status = deploy.poll(handle)
        assert status.state == OperationState.ABORTED
        assert status.done is True
        with pytest.raises(RemoteOperationFailed):
            status.raise_for_failure()

    @responses.activate
    def test_cancel__already_done(self, deploy):
        add_soap_result(
            "cancelDeploy", cancel_deploy_result.format(done="true", process_id=DEPLOY_ID)
        )
        handle = deploy.cancel(DEPLOY_ID)
        assert handle.state == OperationState.ABORTED
        assert handle.done is True


class TestApiDeploy:
    def test_default_options(self, org_config, transport):
        envelope = ApiDeploy(org_config, transport, PACKAGE_ZIP)._build_envelope()
        assert "<rollbackOnError>true</rollbackOnError>" in envelope
        assert "<singlePackage>true</singlePackage>" in envelope
        assert "<purgeOnDelete>false</purgeOnDelete>" in envelope
        assert "<testLevel>" not in envelope
        assert "<runTests>" not in envelope

    def test_non_atomic_options(self, org_config, transport):
        options = DeployOptions(rollback_on_error=False, single_package=False)
        envelope = ApiDeploy(
            org_config, transport, PACKAGE_ZIP, options
        )._build_envelope()
        assert "<rollbackOnError>false</rollbackOnError>" in envelope
        assert "<singlePackage>false</singlePackage>" in envelope

    def test_run_specified_tests(self, org_config, transport):
        options = DeployOptions(
            test_level=TestLevel.RUN_SPECIFIED_TESTS,
            run_tests=["FooTest", "BarTest"],
            ignore_warnings=True,
        )
        envelope = ApiDeploy(
            org_config, transport, PACKAGE_ZIP, options
        )._build_envelope()
        assert "<testLevel>RunSpecifiedTests</testLevel>" in envelope
        assert "<runTests>FooTest</runTests>" in envelope
        assert "<runTests>BarTest</runTests>" in envelope
        assert "<ignoreWarnings>true</ignoreWarnings>" in envelope
        assert envelope.index("<runTests>") < envelope.index("<singlePackage>")

    def test_test_level_from_string(self):
        options = DeployOptions(test_level="RunLocalTests")
        assert options.test_level == TestLevel.RUN_LOCAL_TESTS


class TestMetadataRetrieve:
    @responses.activate
    def test_retrieve_end_to_end(self, retrieve):
        zip_file = build_zip({"unpackaged/classes/Foo.cls": "public class Foo {}"})
        add_soap_result("retrieve", async_result.format(process_id=RETRIEVE_ID))
        add_soap_result(
            "checkRetrieveStatus",
            retrieve_status_in_progress.format(process_id=RETRIEVE_ID),
        )
        add_soap_result(
            "checkRetrieveStatus",
            retrieve_status_succeeded.format(process_id=RETRIEVE_ID, zip_file=zip_file),
        )

        handle = retrieve.submit(RetrieveOptions(unpackaged_manifest=MANIFEST))
        assert handle.id == RETRIEVE_ID
        assert handle.kind == OperationKind.RETRIEVE
        body = request_body(0)
        assert f"<unpackaged>{MANIFEST_BODY}</unpackaged>" in body
        assert "<?xml version=\"1.0\" encoding=\"UTF-8\"?>\n<Package" not in body
        assert "<apiVersion>58.0</apiVersion>" in body
        assert "<singlePackage>false</singlePackage>" in body

        status = retrieve.poll(handle)
        assert status.state == OperationState.IN_PROGRESS
        assert status.done is False

        status = retrieve.poll(handle)
        assert status.state == OperationState.SUCCEEDED
        assert status.success is True
        assert "<includeZip>true</includeZip>" in request_body(2)

        page = retrieve.fetch(status)
        assert page.is_last
        assert [p.file_name for p in page.records] == [
            "unpackaged/classes/Foo.cls",
            "unpackaged/package.xml",
        ]
        assert page.records[0].type == "ApexClass"
        assert page.records[1].id is None
        archive = status.detail.zip_file()
        assert archive.read("unpackaged/classes/Foo.cls") == b"public class Foo {}"

    def test_fetch__not_done(self, retrieve):
        status = OperationStatus(
            RETRIEVE_ID,
            OperationKind.RETRIEVE,
            OperationState.IN_PROGRESS,
            "InProgress",
            False,
        )
        with pytest.raises(ForceApiUsageError):
            retrieve.fetch(status)

    @responses.activate
    def test_poll__failed_with_messages(self, retrieve):
        add_soap_result(
            "checkRetrieveStatus",
            retrieve_status_with_messages.format(process_id=RETRIEVE_ID),
        )
        status = retrieve.poll(RETRIEVE_ID)
        assert status.state == OperationState.FAILED
        assert status.error_code == "UNKNOWN_EXCEPTION"
        assert status.detail.zip_file() is None
        with pytest.raises(RemoteOperationFailed) as e:
            status.raise_for_failure()
        assert str(e.value) == (
            "Retrieve failed\n"
            "unpackaged/package.xml: Entity of type 'ApexClass' named 'Missing' cannot be found"
        )

    @responses.activate
    def test_submit__missing_credentials(self, transport):
        org_config = OrgConfig({"access_token": ACCESS_TOKEN})
        with pytest.raises(MissingCredentials):
            MetadataRetrieve(org_config, transport).submit(RetrieveOptions())
        assert len(responses.calls) == 0

    def test_packaged_and_specific_files(self, org_config, transport):
        options = RetrieveOptions(
            api_version="57.0",
            package_names=["My Package & Co"],
            specific_files=["classes/Foo.cls"],
            single_package=True,
        )
        api = ApiRetrieve(org_config, transport, options)
        envelope = api._build_envelope()
        assert api.api_version == "57.0"
        assert "<apiVersion>57.0</apiVersion>" in envelope
        assert "<packageNames>My Package &amp; Co</packageNames>" in envelope
        assert "<specificFiles>classes/Foo.cls</specificFiles>" in envelope
        assert "<singlePackage>true</singlePackage>" in envelope
        assert "<unpackaged>" not in envelope
