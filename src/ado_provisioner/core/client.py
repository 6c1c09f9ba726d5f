"""Core Azure DevOps API client functionality.

This module provides the REST client every provisioning step talks through. It
owns authentication, the HTTP session and status handling, and exposes one thin
method per endpoint the workflow consumes. Steps never build URLs themselves.

Key Components:
    AzureDevOpsClient: Project-scoped client rooted at
        https://dev.azure.com/{organization}/{project}/

Features:
    - Basic authentication with an empty user name and the PAT as password,
      or Bearer authentication with a Microsoft Entra token
    - Lazy session creation and context manager cleanup
    - Opt-in exponential backoff retry for idempotent GET requests (tenacity),
      off by default so a rate-limit or server error answer is terminal
    - Writes are sent exactly once; a non-2xx response raises ProvisioningError
      carrying the status code and response body
    - api-version pinned per call

Endpoints:
    git:        repositories, refs, items, pushes, pullrequests
    pipelines:  pipelines, pipelines/{id}/runs
    wit:        workitems, wiql
    dashboard:  dashboards

Example:
    ```python
    from ado_provisioner.core.client import AzureDevOpsClient

    with AzureDevOpsClient("myorg", "myproject", token="pat") as client:
        repositories = client.list_repositories()
        main = client.get_ref(repositories[0].name, "main")
    ```

Raises:
    AuthenticationError: When no token is given or the platform rejects it
    ProvisioningError: When the platform answers with a non-2xx status
    ConflictError: When a ref or push is rejected because the tip moved
    requests.exceptions.RequestException: When the transport fails
"""

import logging
from typing import Any, ClassVar
from urllib.parse import quote

import requests
import tenacity
from requests.adapters import HTTPAdapter
from requests.auth import HTTPBasicAuth

from .config import Settings
from .credentials import AuthScheme, Credential
from .exceptions import AuthenticationError, ConflictError, ProvisioningError
from .models import (
    Dashboard,
    FileChange,
    GitRef,
    Pipeline,
    PipelineRun,
    PullRequest,
    RefUpdate,
    RefUpdateResult,
    Repository,
    WorkItem,
    Widget,
)


class RetryableStatusError(Exception):
    """Internal signal that a GET answered with a retryable status code."""

    def __init__(self, response: requests.Response) -> None:
        self.response = response
        super().__init__(f"Retryable status {response.status_code}")


class AzureDevOpsClient:
    """Handles API interactions with Azure DevOps at the project level."""

    API_VERSION = "7.1"  # Azure DevOps API version
    DASHBOARD_API_VERSION = "7.1-preview.3"  # Dashboards are only available as preview
    BASE_HOST = "https://dev.azure.com"
    MAX_RETRIES = 0  # Retries for GET requests, disabled unless asked for
    RETRY_STATUS_CODES: ClassVar[list[int]] = [
        500,
        502,
        503,
        504,
        429,
        408,
    ]  # Status codes to retry on
    AUTH_STATUS_CODES: ClassVar[list[int]] = [
        401,
        403,
        203,  # Azure DevOps answers an invalid PAT with a 203 sign-in page
    ]
    # A 403 on a write is a missing permission (e.g. TF401027), reported with its body
    WRITE_AUTH_STATUS_CODES: ClassVar[list[int]] = [401, 203]
    REQUEST_TIMEOUT = 30  # Seconds
    JSON_PATCH_CONTENT_TYPE = "application/json-patch+json"
    PIPELINE_REPOSITORY_TYPE = "azureReposGit"

    def __init__(
        self,
        organization: str,
        project: str,
        token: str | None,
        auth_scheme: AuthScheme = AuthScheme.BASIC,
        max_retries: int = MAX_RETRIES,
        timeout: float = REQUEST_TIMEOUT,
    ) -> None:
        # Base configuration
        self.organization = organization
        self.project = project
        self.base_url = f"{self.BASE_HOST}/{organization}/{project}/"
        self.max_retries = max_retries
        self.timeout = timeout

        # Authentication
        if not token:
            raise AuthenticationError
        self.token = token
        self.auth_scheme = auth_scheme

        # Session
        self._sync_session = None

    @classmethod
    def from_credential(cls, settings: Settings, credential: Credential, **kwargs: Any) -> "AzureDevOpsClient":
        """Creates a client for the configured project from a resolved credential."""
        return cls(
            organization=settings.organization,
            project=settings.project,
            token=credential.token,
            auth_scheme=credential.scheme,
            **kwargs,
        )

    ### Session methods
    @property
    def session(self) -> requests.Session:
        """Lazy initialization of sync session."""
        if self._sync_session is None:
            self._sync_session = self._create_session()
        return self._sync_session

    def _create_session(self) -> requests.Session:
        """Creates a new authenticated requests session."""
        session = requests.Session()
        session.mount("https://", HTTPAdapter())
        session.headers.update({"Accept": "application/json"})
        if self.auth_scheme is AuthScheme.BEARER:
            session.headers.update({"Authorization": f"Bearer {self.token}"})
        else:
            session.auth = HTTPBasicAuth("", self.token)
        return session

    def close(self) -> None:
        """Closes the underlying session."""
        if self._sync_session:
            self._sync_session.close()
            self._sync_session = None

    ### Context manager methods
    def __enter__(self) -> "AzureDevOpsClient":
        """Context manager entry."""
        if self._sync_session is None:
            self._sync_session = self._create_session()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:  # noqa: ANN001
        """Context manager exit."""
        self.close()

    ### Request methods
    def url(self, path: str) -> str:
        """Builds an absolute URL for a project-relative API path."""
        return f"{self.base_url}{path.lstrip('/')}"

    def _request(
        self,
        method: str,
        path: str,
        *,
        step: str,
        params: dict | None = None,
        body: Any = None,
        headers: dict | None = None,
        api_version: str = API_VERSION,
    ) -> requests.Response:
        """Sends one request and rejects authentication failures."""
        merged_params = {"api-version": api_version, **(params or {})}
        response = self.session.request(
            method,
            self.url(path),
            params=merged_params,
            json=body,
            headers=headers,
            timeout=self.timeout,
        )
        logging.debug("client: %s %s -> %s", method, path, response.status_code)
        auth_status_codes = self.AUTH_STATUS_CODES if method == "GET" else self.WRITE_AUTH_STATUS_CODES
        if response.status_code in auth_status_codes:
            logging.error("client: [%s] %s - %s", response.status_code, response.reason, step)  # noqa: TRY400
            msg = f"{step} was rejected with status {response.status_code}. Check the token and its scopes"
            raise AuthenticationError(msg)
        return response

    @staticmethod
    def _raise_for_status(
        response: requests.Response,
        step: str,
        *,
        hint: str | None = None,
        conflict: bool = False,
    ) -> None:
        """Raises ProvisioningError (or ConflictError for 409 when conflict is set) on non-2xx."""
        if response.ok:
            return
        logging.error("client: [%s] %s - %s", response.status_code, response.reason, step)  # noqa: TRY400
        if conflict and response.status_code == 409:  # noqa: PLR2004
            raise ConflictError(step, response.status_code, response.text)
        raise ProvisioningError(step, response.status_code, response.text, hint)

    @staticmethod
    def _retry_if_retryable(exception: BaseException) -> bool:
        """Return True if a GET should be retried after this exception."""
        return isinstance(
            exception,
            RetryableStatusError | requests.exceptions.ConnectionError | requests.exceptions.Timeout,
        )

    def _retrying(self) -> tenacity.Retrying:
        return tenacity.Retrying(
            wait=tenacity.wait_exponential(multiplier=1, min=1, max=10),
            stop=tenacity.stop_after_attempt(self.max_retries + 1),
            retry=tenacity.retry_if_exception(self._retry_if_retryable),
            reraise=True,
        )

    def _get_once(self, path: str, step: str, params: dict | None, api_version: str) -> requests.Response:
        response = self._request("GET", path, step=step, params=params, api_version=api_version)
        if response.status_code in self.RETRY_STATUS_CODES:
            logging.warning("client: [%s] retrying %s", response.status_code, step)
            raise RetryableStatusError(response)
        return response

    def _get(
        self,
        path: str,
        *,
        step: str,
        params: dict | None = None,
        api_version: str = API_VERSION,
        allow_not_found: bool = False,
    ) -> dict | None:
        """Handles GET requests with retry, error handling and JSON response."""
        try:
            response = self._retrying()(self._get_once, path, step, params, api_version)
        except RetryableStatusError as e:
            response = e.response
        if allow_not_found and response.status_code == 404:  # noqa: PLR2004
            return None
        self._raise_for_status(response, step)
        return response.json()

    def _send(
        self,
        method: str,
        path: str,
        *,
        step: str,
        body: Any,
        headers: dict | None = None,
        api_version: str = API_VERSION,
        hint: str | None = None,
        conflict: bool = False,
    ) -> dict:
        """Handles write requests. Writes are never retried."""
        response = self._request(method, path, step=step, body=body, headers=headers, api_version=api_version)
        self._raise_for_status(response, step, hint=hint, conflict=conflict)
        return response.json() if response.content else {}

    @staticmethod
    def _segment(value: str) -> str:
        """Quotes a single URL path segment."""
        return quote(value, safe="")

    ### Repository methods
    def list_repositories(self) -> list[Repository]:
        """Lists all repositories in the project."""
        data = self._get("_apis/git/repositories", step="list repositories")
        return [Repository.from_get_response(item) for item in data.get("value", [])]

    def get_repository(self, repository: str) -> Repository:
        """Gets details of a repository by name or id."""
        data = self._get(f"_apis/git/repositories/{self._segment(repository)}", step="read repository")
        return Repository.from_get_response(data)

    def create_repository(self, name: str) -> Repository:
        """Creates a repository in the project."""
        data = self._send(
            "POST",
            "_apis/git/repositories",
            step=f"create repository '{name}'",
            body={"name": name},
            hint="Please create a repository manually in Azure DevOps",
        )
        return Repository.from_get_response(data)

    ### Ref methods
    def get_ref(self, repository: str, branch: str) -> GitRef | None:
        """Gets the ref of a branch, or None if the branch does not exist."""
        ref_name = GitRef.ref_name(branch)
        data = self._get(
            f"_apis/git/repositories/{self._segment(repository)}/refs",
            step=f"read branch '{branch}'",
            params={"filter": ref_name.removeprefix("refs/")},
            allow_not_found=True,
        )
        if data is None:
            return None
        # The filter is a prefix match, 'heads/feature' also returns 'heads/feature-x'
        for item in data.get("value", []):
            if item.get("name") == ref_name:
                return GitRef.from_get_response(item)
        return None

    def update_refs(self, repository: str, updates: list[RefUpdate], step: str = "update refs") -> list[RefUpdateResult]:
        """Creates or updates refs. Each result carries the platform verdict for one ref."""
        data = self._send(
            "POST",
            f"_apis/git/repositories/{self._segment(repository)}/refs",
            step=step,
            body=[update.to_body() for update in updates],
            conflict=True,
        )
        return [RefUpdateResult.from_get_response(item) for item in data.get("value", [])]

    ### Item and push methods
    def item_exists(self, repository: str, path: str, branch: str) -> bool:
        """Checks whether a file exists at a path on a branch (metadata lookup only)."""
        data = self._get(
            f"_apis/git/repositories/{self._segment(repository)}/items",
            step=f"read item '{path}'",
            params={
                "path": "/" + path.lstrip("/"),
                "versionDescriptor.version": GitRef.ref_name(branch).removeprefix(GitRef.HEADS_PREFIX),
                "versionDescriptor.versionType": "branch",
                "includeContent": "false",
            },
            allow_not_found=True,
        )
        return data is not None

    def create_push(
        self,
        repository: str,
        branch: str,
        old_object_id: str,
        comment: str,
        changes: list[FileChange],
    ) -> dict:
        """Pushes a single commit holding all changes against the branch's last known tip."""
        body = {
            "refUpdates": [{"name": GitRef.ref_name(branch), "oldObjectId": old_object_id}],
            "commits": [{"comment": comment, "changes": [change.to_body() for change in changes]}],
        }
        return self._send(
            "POST",
            f"_apis/git/repositories/{self._segment(repository)}/pushes",
            step=f"push to '{branch}'",
            body=body,
            conflict=True,
        )

    ### Pipeline methods
    def list_pipelines(self) -> list[Pipeline]:
        """Lists all pipelines in the project."""
        data = self._get("_apis/pipelines", step="list pipelines")
        return [Pipeline.from_get_response(item) for item in data.get("value", [])]

    def create_pipeline(
        self,
        name: str,
        repository: Repository,
        yaml_path: str,
        folder: str | None = None,
    ) -> Pipeline:
        """Creates a YAML pipeline bound to a repository path."""
        body = {
            "name": name,
            "folder": Pipeline.FOLDER_SEPARATOR + (folder or "").strip("\\/").replace("/", Pipeline.FOLDER_SEPARATOR),
            "configuration": {
                "type": "yaml",
                "path": "/" + yaml_path.lstrip("/"),
                "repository": {
                    "id": repository.id,
                    "name": repository.name,
                    "type": self.PIPELINE_REPOSITORY_TYPE,
                },
            },
        }
        data = self._send("POST", "_apis/pipelines", step=f"create pipeline '{name}'", body=body)
        return Pipeline.from_get_response(data)

    def list_pipeline_runs(self, pipeline_id: int) -> list[PipelineRun]:
        """Lists the runs of a pipeline, most recent first."""
        data = self._get(f"_apis/pipelines/{pipeline_id}/runs", step=f"list runs of pipeline {pipeline_id}")
        return [PipelineRun.from_get_response(item) for item in data.get("value", [])]

    ### Work item methods
    def create_work_item(self, work_item_type: str, document: list[dict[str, Any]], step: str | None = None) -> WorkItem:
        """Creates a work item from a field-patch document."""
        data = self._send(
            "POST",
            f"_apis/wit/workitems/${self._segment(work_item_type)}",
            step=step or f"create {work_item_type}",
            body=document,
            headers={"Content-Type": self.JSON_PATCH_CONTENT_TYPE},
        )
        return WorkItem.from_get_response(data)

    def query_work_items(self, wiql: str) -> list[int]:
        """Runs a WIQL query and returns the matching work item ids in query order."""
        data = self._send("POST", "_apis/wit/wiql", step="query work items", body={"query": wiql})
        return [int(item["id"]) for item in data.get("workItems", [])]

    def get_work_item(self, work_item_id: int) -> WorkItem:
        """Gets a work item with all its fields."""
        data = self._get(f"_apis/wit/workitems/{work_item_id}", step=f"read work item {work_item_id}")
        return WorkItem.from_get_response(data)

    ### Pull request methods
    def create_pull_request(
        self,
        repository: str,
        source_branch: str,
        target_branch: str,
        title: str,
        description: str,
        work_item_ids: list[int],
    ) -> PullRequest:
        """Opens a pull request linking the given work items."""
        body = {
            "sourceRefName": GitRef.ref_name(source_branch),
            "targetRefName": GitRef.ref_name(target_branch),
            "title": title,
            "description": description,
            "workItemRefs": [{"id": str(work_item_id)} for work_item_id in work_item_ids],
        }
        data = self._send(
            "POST",
            f"_apis/git/repositories/{self._segment(repository)}/pullrequests",
            step="create pull request",
            body=body,
        )
        return PullRequest.from_get_response(data, work_item_ids)

    ### Dashboard methods
    def create_dashboard(self, name: str, widgets: list[Widget], description: str = "") -> Dashboard:
        """Creates a project dashboard with the given widgets."""
        body = {
            "name": name,
            "description": description,
            "dashboardScope": "project",
            "widgets": [widget.to_body() for widget in widgets],
        }
        data = self._send(
            "POST",
            "_apis/dashboard/dashboards",
            step=f"create dashboard '{name}'",
            body=body,
            api_version=self.DASHBOARD_API_VERSION,
        )
        return Dashboard(id=str(data.get("id", "")), name=data.get("name", name), widgets=list(widgets), url=data.get("url"))
