# ruff: noqa: S105
import json
from collections.abc import Callable
from unittest.mock import MagicMock

import pytest
import requests

from ado_provisioner.core.client import AzureDevOpsClient
from ado_provisioner.core.config import Settings
from ado_provisioner.core.models import GitRef, Pipeline, PullRequest, RefUpdateResult, Repository, WorkItem


def build_response(status_code: int = 200, payload: object = None, reason: str = "OK") -> requests.Response:
    """Build a real requests.Response carrying a JSON payload."""
    response = requests.Response()
    response.status_code = status_code
    response.reason = reason
    response.url = "https://dev.azure.com/test-org/test-project/"
    response._content = b"" if payload is None else json.dumps(payload).encode()  # noqa: SLF001
    return response


@pytest.fixture
def make_response() -> Callable[..., requests.Response]:
    """Factory for canned HTTP responses."""
    return build_response


@pytest.fixture
def settings() -> Settings:
    """Settings for a fully configured project."""
    return Settings.model_validate(
        {
            "Organization": "test-org",
            "Project": "test-project",
            "PersonalAccessToken": "test-token",
            "Repository": {"Name": "app", "MainBranch": "main", "FeatureBranch": "feature"},
            "Pipeline": {"Name": "app-CI", "YamlPath": "azure-pipelines.yml"},
            "WorkItems": {"Type": "User Story"},
        },
    )


@pytest.fixture
def repository() -> Repository:
    return Repository(name="app", id="r1", web_url="https://dev.azure.com/test-org/test-project/_git/app")


@pytest.fixture
def client(repository: Repository) -> MagicMock:
    """A client double answering like an empty project that already has the repository."""
    mock = MagicMock(spec=AzureDevOpsClient)
    mock.url.side_effect = lambda path: f"https://dev.azure.com/test-org/test-project/{path}"
    mock.list_repositories.return_value = [repository]
    mock.get_repository.return_value = repository
    # Ref name -> commit id; ref updates are applied so later reads see them
    refs = {GitRef.ref_name("main"): "c1"}

    def get_ref(_repo: str, branch: str) -> GitRef | None:
        name = GitRef.ref_name(branch)
        return GitRef(name=name, object_id=refs[name]) if name in refs else None

    def update_refs(_repo: str, updates: list, step: str = "update refs") -> list[RefUpdateResult]:
        for update in updates:
            refs[update.name] = update.new_object_id
        return [
            RefUpdateResult(name=update.name, success=True, update_status="succeeded", new_object_id=update.new_object_id)
            for update in updates
        ]

    mock.get_ref.side_effect = get_ref
    mock.update_refs.side_effect = update_refs
    mock.item_exists.return_value = False
    mock.create_push.return_value = {"pushId": 1}
    mock.list_pipelines.return_value = []
    mock.create_pipeline.side_effect = lambda name, repo, yaml_path, folder=None: Pipeline(id=5, name=name, path=yaml_path)
    mock.create_work_item.side_effect = lambda work_item_type, document, step=None: WorkItem(
        id=42,
        fields={op["path"].removeprefix("/fields/"): op["value"] for op in document},
    )
    mock.create_pull_request.side_effect = lambda repo, source, target, title, description, ids: PullRequest(
        pull_request_id=7,
        source_ref_name=GitRef.ref_name(source),
        target_ref_name=GitRef.ref_name(target),
        title=title,
        description=description,
        work_item_ids=list(ids),
    )
    return mock
