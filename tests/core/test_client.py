# ruff: noqa: SLF001,PLR2004,S105
from unittest.mock import MagicMock, patch

import pytest
import requests

from ado_provisioner.core.client import AzureDevOpsClient
from ado_provisioner.core.credentials import AuthScheme, Credential
from ado_provisioner.core.exceptions import AuthenticationError, ConflictError, ProvisioningError
from ado_provisioner.core.models import ChangeType, FileChange, GitRef, RefUpdate, Repository, Widget


def test_base_url() -> None:
    """Test that every request is rooted at the organization and project."""
    client = AzureDevOpsClient("test-org", "test-project", "test-token")
    if client.base_url != "https://dev.azure.com/test-org/test-project/":
        pytest.fail(f"Unexpected base_url '{client.base_url}'")
    if client.url("/_apis/git/repositories") != "https://dev.azure.com/test-org/test-project/_apis/git/repositories":
        pytest.fail(f"Unexpected url '{client.url('/_apis/git/repositories')}'")


def test_authentication_error_on_empty_token() -> None:
    """Test that authentication error is raised when no token is available."""
    with pytest.raises(AuthenticationError):
        AzureDevOpsClient("test-org", "test-project", None)


def test_basic_and_bearer_sessions() -> None:
    """Test that PATs use Basic auth with an empty user and Entra tokens use Bearer."""
    basic = AzureDevOpsClient("test-org", "test-project", "test-token")
    if basic.session.auth is None or basic.session.auth.username != "" or basic.session.auth.password != "test-token":
        pytest.fail("Expected Basic auth with an empty user name and the PAT as password")

    bearer = AzureDevOpsClient("test-org", "test-project", "entra-token", auth_scheme=AuthScheme.BEARER)
    if bearer.session.headers.get("Authorization") != "Bearer entra-token":
        pytest.fail("Expected a Bearer authorization header")
    if bearer.session.auth is not None:
        pytest.fail("Expected no Basic auth for Bearer sessions")


def test_from_credential(settings) -> None:
    """Test client creation from settings and a resolved credential."""
    credential = Credential(token="entra-token", scheme=AuthScheme.BEARER, source="azure-identity")
    client = AzureDevOpsClient.from_credential(settings, credential, max_retries=0)
    if client.project != "test-project" or client.auth_scheme is not AuthScheme.BEARER or client.max_retries != 0:
        pytest.fail("Unexpected client configuration")


def test_retry_if_retryable(make_response) -> None:
    """Test the retry condition for GET failures."""
    from ado_provisioner.core.client import RetryableStatusError

    if not AzureDevOpsClient._retry_if_retryable(RetryableStatusError(make_response(503))):
        pytest.fail("Expected retry for status code 503")
    if not AzureDevOpsClient._retry_if_retryable(requests.exceptions.ConnectionError()):
        pytest.fail("Expected retry for connection errors")
    if AzureDevOpsClient._retry_if_retryable(ValueError("Not a transport error")):
        pytest.fail("Expected no retry for other errors")


class TestRequests:
    """Test suite for request handling against a mocked session."""

    def setup_method(self) -> None:
        """Setup test client."""
        self.client = AzureDevOpsClient("test-org", "test-project", "test-token", max_retries=2)
        self.session = MagicMock()
        self.client._sync_session = self.session

    def test_context_manager(self) -> None:
        """Test context manager."""
        client = AzureDevOpsClient("test-org", "test-project", "test-token")
        with client:
            if client._sync_session is None:
                pytest.fail("Session not created")

        if client._sync_session is not None:
            pytest.fail("Session not cleaned up")

    def test_api_version_pinned(self, make_response) -> None:
        """Test that every call carries the pinned api-version."""
        self.session.request.return_value = make_response(200, {"value": []})
        self.client.list_repositories()

        method, url = self.session.request.call_args.args
        params = self.session.request.call_args.kwargs["params"]
        if method != "GET" or url != "https://dev.azure.com/test-org/test-project/_apis/git/repositories":
            pytest.fail(f"Unexpected request {method} {url}")
        if params.get("api-version") != "7.1":
            pytest.fail(f"Expected api-version 7.1, got {params}")

    def test_get_retried_on_server_error(self, make_response) -> None:
        """Test that idempotent reads are retried on 5xx."""
        self.session.request.side_effect = [
            make_response(503, reason="Service Unavailable"),
            make_response(200, {"value": [{"id": "r1", "name": "app"}]}),
        ]
        with patch("time.sleep"):
            repositories = self.client.list_repositories()

        if self.session.request.call_count != 2:
            pytest.fail(f"Expected 2 attempts, got {self.session.request.call_count}")
        if [repo.name for repo in repositories] != ["app"]:
            pytest.fail(f"Unexpected repositories {repositories}")

    def test_get_gives_up_after_max_retries(self, make_response) -> None:
        """Test that the last retryable response becomes a ProvisioningError."""
        self.session.request.return_value = make_response(503, "busy", reason="Service Unavailable")
        with patch("time.sleep"), pytest.raises(ProvisioningError) as exc_info:
            self.client.list_pipelines()

        if self.session.request.call_count != 3:
            pytest.fail(f"Expected 3 attempts, got {self.session.request.call_count}")
        if exc_info.value.status_code != 503:
            pytest.fail(f"Unexpected status {exc_info.value.status_code}")

    def test_retries_disabled(self, make_response) -> None:
        """Test that max_retries=0 sends a single request."""
        self.client.max_retries = 0
        self.session.request.return_value = make_response(503, reason="Service Unavailable")
        with patch("time.sleep"), pytest.raises(ProvisioningError):
            self.client.list_pipelines()
        if self.session.request.call_count != 1:
            pytest.fail(f"Expected 1 attempt, got {self.session.request.call_count}")

    def test_writes_are_not_retried(self, make_response) -> None:
        """Test that a failed write is sent exactly once."""
        self.session.request.return_value = make_response(503, "busy", reason="Service Unavailable")
        with patch("time.sleep"), pytest.raises(ProvisioningError) as exc_info:
            self.client.create_repository("app")

        if self.session.request.call_count != 1:
            pytest.fail(f"Expected 1 attempt, got {self.session.request.call_count}")
        if "create repository 'app' failed. Status: 503" not in str(exc_info.value):
            pytest.fail(f"Unexpected message '{exc_info.value}'")
        if "create a repository manually" not in str(exc_info.value):
            pytest.fail("Expected the manual creation hint")

    @pytest.mark.parametrize("status_code", [401, 403, 203])
    def test_authentication_failures(self, make_response, status_code) -> None:
        """Test that rejected credentials raise AuthenticationError."""
        self.session.request.return_value = make_response(status_code, reason="Unauthorized")
        with pytest.raises(AuthenticationError):
            self.client.list_repositories()

    def test_forbidden_write_keeps_status_and_body(self, make_response) -> None:
        """Test that a 403 on a create reports the platform error and the manual hint."""
        body = {"message": "TF401027: You need the Git 'CreateRepository' permission to perform this action."}
        self.session.request.return_value = make_response(403, body, reason="Forbidden")
        with pytest.raises(ProvisioningError) as exc_info:
            self.client.create_repository("app")

        if isinstance(exc_info.value, AuthenticationError) or exc_info.value.status_code != 403:
            pytest.fail(f"Unexpected error {exc_info.value!r}")
        if "TF401027" not in exc_info.value.body or "create a repository manually" not in str(exc_info.value):
            pytest.fail(f"Expected the body and the manual hint in '{exc_info.value}'")

    @pytest.mark.parametrize("status_code", [401, 203])
    def test_rejected_token_on_write(self, make_response, status_code) -> None:
        """Test that an invalid token on a write is still an authentication failure."""
        self.session.request.return_value = make_response(status_code, reason="Unauthorized")
        with pytest.raises(AuthenticationError):
            self.client.create_repository("app")

    def test_rate_limit_is_terminal_by_default(self, make_response) -> None:
        """Test that a default client does not retry a 429."""
        client = AzureDevOpsClient("test-org", "test-project", "test-token")
        client._sync_session = self.session
        self.session.request.side_effect = [
            make_response(429, reason="Too Many Requests"),
            make_response(200, {"value": []}),
        ]
        with patch("time.sleep"), pytest.raises(ProvisioningError) as exc_info:
            client.list_repositories()

        if self.session.request.call_count != 1 or exc_info.value.status_code != 429:
            pytest.fail(f"Expected a single terminal attempt, got {self.session.request.call_count}")

    def test_get_ref_exact_match(self, make_response) -> None:
        """Test that the ref prefix filter does not leak similarly named branches."""
        self.session.request.return_value = make_response(
            200,
            {
                "value": [
                    {"name": "refs/heads/feature-x", "objectId": "aaa"},
                    {"name": "refs/heads/feature", "objectId": "bbb"},
                ],
            },
        )
        ref = self.client.get_ref("app", "feature")
        if ref != GitRef(name="refs/heads/feature", object_id="bbb"):
            pytest.fail(f"Unexpected ref {ref}")

        params = self.session.request.call_args.kwargs["params"]
        if params.get("filter") != "heads/feature":
            pytest.fail(f"Unexpected filter {params}")

    def test_get_ref_missing(self, make_response) -> None:
        """Test that a missing branch yields None."""
        self.session.request.return_value = make_response(200, {"value": [{"name": "refs/heads/feature-x", "objectId": "a"}]})
        if self.client.get_ref("app", "feature") is not None:
            pytest.fail("Expected no ref")

        self.session.request.return_value = make_response(404, reason="Not Found")
        if self.client.get_ref("app", "feature") is not None:
            pytest.fail("Expected no ref for 404")

    def test_update_refs(self, make_response) -> None:
        """Test the ref update body and the per-ref verdicts."""
        self.session.request.return_value = make_response(
            200,
            {"value": [{"name": "refs/heads/feature", "success": False, "updateStatus": "staleOldObjectId"}]},
        )
        update = RefUpdate(name="refs/heads/feature", old_object_id="a", new_object_id="b")
        results = self.client.update_refs("app", [update])

        body = self.session.request.call_args.kwargs["json"]
        if body != [{"name": "refs/heads/feature", "oldObjectId": "a", "newObjectId": "b"}]:
            pytest.fail(f"Unexpected body {body}")
        if not results[0].is_stale or results[0].success:
            pytest.fail(f"Expected a stale verdict, got {results[0]}")

    def test_item_exists(self, make_response) -> None:
        """Test the metadata-only existence probe."""
        self.session.request.return_value = make_response(200, {"objectId": "x", "path": "/azure-pipelines.yml"})
        if not self.client.item_exists("app", "azure-pipelines.yml", "feature"):
            pytest.fail("Expected the item to exist")
        params = self.session.request.call_args.kwargs["params"]
        if params["path"] != "/azure-pipelines.yml" or params["includeContent"] != "false":
            pytest.fail(f"Unexpected params {params}")

        self.session.request.return_value = make_response(404, reason="Not Found")
        if self.client.item_exists("app", "missing.yml", "feature"):
            pytest.fail("Expected the item to be missing")

    def test_create_push_conflict(self, make_response) -> None:
        """Test that a push against a moved tip raises ConflictError."""
        self.session.request.return_value = make_response(409, {"message": "stale"}, reason="Conflict")
        change = FileChange(path="azure-pipelines.yml", content="trigger: none", change_type=ChangeType.ADD)
        with pytest.raises(ConflictError):
            self.client.create_push("app", "feature", "c1", "Add azure-pipelines.yml", [change])

        body = self.session.request.call_args.kwargs["json"]
        if body["refUpdates"] != [{"name": "refs/heads/feature", "oldObjectId": "c1"}]:
            pytest.fail(f"Unexpected refUpdates {body['refUpdates']}")
        if body["commits"][0]["changes"][0]["item"]["path"] != "/azure-pipelines.yml":
            pytest.fail(f"Unexpected change {body['commits'][0]['changes'][0]}")

    def test_create_pipeline(self, make_response) -> None:
        """Test the YAML pipeline creation body."""
        self.session.request.return_value = make_response(200, {"id": 5, "name": "app-CI", "folder": "\\ci"})
        repository = Repository(name="app", id="r1")
        pipeline = self.client.create_pipeline("app-CI", repository, "azure-pipelines.yml", folder="ci")

        body = self.session.request.call_args.kwargs["json"]
        if body["folder"] != "\\ci" or body["configuration"]["path"] != "/azure-pipelines.yml":
            pytest.fail(f"Unexpected body {body}")
        if body["configuration"]["repository"] != {"id": "r1", "name": "app", "type": "azureReposGit"}:
            pytest.fail(f"Unexpected repository binding {body['configuration']['repository']}")
        if pipeline.id != 5 or pipeline.folder != "ci":
            pytest.fail(f"Unexpected pipeline {pipeline}")

    def test_create_work_item(self, make_response) -> None:
        """Test that work items are created with a JSON patch document."""
        self.session.request.return_value = make_response(200, {"id": 42, "fields": {"System.Title": "Login"}})
        document = [{"op": "add", "path": "/fields/System.Title", "value": "Login"}]
        work_item = self.client.create_work_item("User Story", document)

        _, url = self.session.request.call_args.args
        headers = self.session.request.call_args.kwargs["headers"]
        if not url.endswith("_apis/wit/workitems/$User%20Story"):
            pytest.fail(f"Unexpected url {url}")
        if headers.get("Content-Type") != "application/json-patch+json":
            pytest.fail(f"Unexpected headers {headers}")
        if work_item.id != 42 or work_item.title != "Login":
            pytest.fail(f"Unexpected work item {work_item}")

    def test_create_pull_request(self, make_response) -> None:
        """Test that work items are linked by id."""
        self.session.request.return_value = make_response(
            201,
            {"pullRequestId": 7, "sourceRefName": "refs/heads/feature", "targetRefName": "refs/heads/main", "title": "t"},
        )
        pull_request = self.client.create_pull_request("app", "feature", "main", "t", "d", [42])

        body = self.session.request.call_args.kwargs["json"]
        if body["workItemRefs"] != [{"id": "42"}] or body["sourceRefName"] != "refs/heads/feature":
            pytest.fail(f"Unexpected body {body}")
        if pull_request.pull_request_id != 7 or pull_request.work_item_ids != [42]:
            pytest.fail(f"Unexpected pull request {pull_request}")

    def test_create_dashboard(self, make_response) -> None:
        """Test that dashboards use the preview api-version."""
        self.session.request.return_value = make_response(200, {"id": "d1", "name": "Sprint"})
        widget = Widget(name="Work Item #42", row=1, column=1, contribution_id="c", settings="s")
        dashboard = self.client.create_dashboard("Sprint", [widget])

        params = self.session.request.call_args.kwargs["params"]
        if params["api-version"] != "7.1-preview.3":
            pytest.fail(f"Unexpected params {params}")
        if dashboard.id != "d1" or dashboard.widgets != [widget]:
            pytest.fail(f"Unexpected dashboard {dashboard}")

    def test_query_work_items(self, make_response) -> None:
        """Test WIQL results keep the query order."""
        self.session.request.return_value = make_response(200, {"workItems": [{"id": 9}, {"id": 3}]})
        if self.client.query_work_items("SELECT [System.Id] FROM WorkItems") != [9, 3]:
            pytest.fail("Unexpected work item ids")

    def test_transport_error_propagates(self) -> None:
        """Test that transport errors on writes propagate unchanged."""
        self.session.request.side_effect = requests.exceptions.ConnectionError("Network error")
        with pytest.raises(requests.exceptions.ConnectionError):
            self.client.create_repository("app")
