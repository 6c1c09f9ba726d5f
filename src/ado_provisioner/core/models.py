"""Core data models for repository provisioning.

This module defines the data models that flow between the provisioning steps.
They mirror the Azure DevOps REST resources the workflow reads and writes, and
each resource model knows how to build itself from an API payload.

Classes:
    Azure DevOps Resources:
        Repository: An Azure DevOps git repository
        GitRef: A named pointer (branch) to a commit
        Pipeline: A YAML build pipeline definition
        PipelineRun: A single run of a pipeline
        WorkItem: A tracked unit of work (e.g. a User Story)
        PullRequest: A pull request with its linked work items
        Dashboard: A dashboard and its widgets

    Request Models:
        RefUpdate: One entry of a ref create/update request
        RefUpdateResult: The platform verdict for one ref update
        FileChange: One file change inside a push
        Widget: One dashboard widget

    Enums:
        ChangeType: Kind of change applied to a file in a push (add/edit)
        PushMode: What the workflow pushes to the feature branch

    Results:
        ProvisioningResult: Observable outcome of a full workflow run

Example:
    ```python
    from ado_provisioner.core.models import GitRef, RefUpdate, ZERO_OBJECT_ID

    main = GitRef(name="refs/heads/main", object_id="c1")

    # Create a branch that does not exist yet
    update = RefUpdate(
        name=GitRef.ref_name("feature"),
        old_object_id=ZERO_OBJECT_ID,
        new_object_id=main.object_id,
    )
    body = [update.to_body()]
    ```
"""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, ClassVar

from .exceptions import ConfigurationError

ZERO_OBJECT_ID = "0" * 40  # Sentinel old object id for "branch does not exist yet"


class ChangeType(Enum):
    """Represents the kind of change applied to a file in a push."""

    ADD = "add"
    EDIT = "edit"

    def __str__(self) -> str:
        """Return the string value of the enum."""
        return self.value


class PushMode(Enum):
    """
    Defines what the workflow pushes to the feature branch.

    PIPELINE: Only the pipeline YAML definition
    PROJECT: The filtered project file tree
    NONE: Nothing, the branch is only created or reset
    """

    PIPELINE = "pipeline"
    PROJECT = "project"
    NONE = "none"

    @classmethod
    def from_string(cls, value: str) -> "PushMode":
        """Convert a string to a PushMode enum."""
        try:
            return cls[value.upper()]
        except KeyError as e:
            valid = ", ".join(m.value for m in cls)
            msg = f"Invalid push mode: {value}. Must be one of: {valid}"
            raise ConfigurationError(msg) from e

    def __str__(self) -> str:
        """Return the string value of the enum."""
        return self.value


@dataclass(frozen=True)
class Repository:
    """
    Represents an Azure DevOps git repository.

    Attributes:
        name: Repository name
        id: Opaque repository identifier
        web_url: Browser URL of the repository
        default_branch: Default branch ref name, absent for empty repositories
    """

    name: str
    id: str
    web_url: str | None = None
    default_branch: str | None = None

    @classmethod
    def from_get_response(cls, data: dict[str, Any]) -> "Repository":
        """Creates a Repository instance from get API response."""
        return cls(
            name=data["name"],
            id=data["id"],
            web_url=data.get("webUrl"),
            default_branch=data.get("defaultBranch"),
        )


@dataclass(frozen=True)
class GitRef:
    """Represents a branch ref and the commit it currently points to."""

    name: str
    object_id: str

    HEADS_PREFIX: ClassVar[str] = "refs/heads/"

    @classmethod
    def from_get_response(cls, data: dict[str, Any]) -> "GitRef":
        """Creates a GitRef instance from get API response."""
        return cls(name=data["name"], object_id=data["objectId"])

    @classmethod
    def ref_name(cls, branch: str) -> str:
        """Return the fully-qualified ref name for a branch."""
        if branch.startswith(cls.HEADS_PREFIX):
            return branch
        return f"{cls.HEADS_PREFIX}{branch}"

    @property
    def branch(self) -> str:
        """Short branch name without the refs/heads/ prefix."""
        return self.name.removeprefix(self.HEADS_PREFIX)


@dataclass(frozen=True)
class RefUpdate:
    """
    One entry of a ref create/update request.

    The platform accepts the update only if old_object_id still matches the
    current tip of the ref. ZERO_OBJECT_ID creates the ref unconditionally.
    """

    name: str
    old_object_id: str
    new_object_id: str

    @property
    def is_create(self) -> bool:
        """Whether this update creates a new ref."""
        return self.old_object_id == ZERO_OBJECT_ID

    def to_body(self) -> dict[str, str]:
        """Serialize to the REST request shape."""
        return {
            "name": self.name,
            "oldObjectId": self.old_object_id,
            "newObjectId": self.new_object_id,
        }


@dataclass(frozen=True)
class RefUpdateResult:
    """The platform verdict for one ref update."""

    name: str
    success: bool
    update_status: str
    new_object_id: str | None = None

    STALE_STATUS: ClassVar[str] = "staleOldObjectId"

    @classmethod
    def from_get_response(cls, data: dict[str, Any]) -> "RefUpdateResult":
        """Creates a RefUpdateResult instance from the ref update API response."""
        return cls(
            name=data.get("name", ""),
            success=bool(data.get("success", False)),
            update_status=data.get("updateStatus", ""),
            new_object_id=data.get("newObjectId"),
        )

    @property
    def is_stale(self) -> bool:
        """Whether the update was rejected because the ref moved."""
        return self.update_status == self.STALE_STATUS


@dataclass(frozen=True)
class FileChange:
    """One file change inside a push."""

    path: str
    content: str
    change_type: ChangeType = ChangeType.ADD

    @property
    def item_path(self) -> str:
        """Repository item path, always rooted at '/'."""
        return "/" + self.path.lstrip("/")

    def to_body(self) -> dict[str, Any]:
        """Serialize to the REST request shape."""
        return {
            "changeType": str(self.change_type),
            "item": {"path": self.item_path},
            "newContent": {"content": self.content, "contentType": "rawtext"},
        }


@dataclass(frozen=True)
class Pipeline:
    """
    Represents an Azure DevOps YAML pipeline.

    Attributes:
        id: Pipeline identifier
        name: Pipeline name
        folder: Pipeline folder, without the leading separator
        url: REST URL of the pipeline
        path: YAML definition path, when the payload includes it
    """

    id: int
    name: str
    folder: str = ""
    url: str | None = None
    path: str | None = None

    FOLDER_SEPARATOR: ClassVar[str] = "\\"

    @classmethod
    def from_get_response(cls, data: dict[str, Any]) -> "Pipeline":
        """Creates a Pipeline instance from get API response."""
        config = data.get("configuration") or {}
        return cls(
            id=data["id"],
            name=data["name"],
            folder=(data.get("folder") or "").lstrip(cls.FOLDER_SEPARATOR),
            url=data.get("url"),
            path=config.get("path"),
        )


@dataclass(frozen=True)
class PipelineRun:
    """A single run of a pipeline."""

    id: int
    state: str
    result: str | None = None

    @classmethod
    def from_get_response(cls, data: dict[str, Any]) -> "PipelineRun":
        """Creates a PipelineRun instance from get API response."""
        return cls(id=data["id"], state=data.get("state", "unknown"), result=data.get("result"))


@dataclass(frozen=True)
class WorkItem:
    """Represents an Azure DevOps work item and its raw field map."""

    id: int
    fields: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_get_response(cls, data: dict[str, Any]) -> "WorkItem":
        """Creates a WorkItem instance from get API response."""
        return cls(id=int(data["id"]), fields=dict(data.get("fields") or {}))

    @property
    def title(self) -> str:
        return self.fields.get("System.Title", "")

    @property
    def state(self) -> str:
        return self.fields.get("System.State", "")

    @property
    def description(self) -> str | None:
        return self.fields.get("System.Description")


@dataclass(frozen=True)
class PullRequest:
    """Represents a pull request and the work items linked to it."""

    pull_request_id: int
    source_ref_name: str
    target_ref_name: str
    title: str
    description: str = ""
    work_item_ids: list[int] = field(default_factory=list)
    url: str | None = None

    @classmethod
    def from_get_response(cls, data: dict[str, Any], work_item_ids: list[int] | None = None) -> "PullRequest":
        """Creates a PullRequest instance from create API response."""
        if work_item_ids is None:
            work_item_ids = [int(ref["id"]) for ref in data.get("workItemRefs") or []]
        return cls(
            pull_request_id=data["pullRequestId"],
            source_ref_name=data.get("sourceRefName", ""),
            target_ref_name=data.get("targetRefName", ""),
            title=data.get("title", ""),
            description=data.get("description", ""),
            work_item_ids=list(work_item_ids),
            url=data.get("url"),
        )


@dataclass(frozen=True)
class Widget:
    """One dashboard widget bound to a work item."""

    name: str
    row: int
    column: int
    contribution_id: str
    settings: str

    ROW_SPAN: ClassVar[int] = 1
    COLUMN_SPAN: ClassVar[int] = 2

    def to_body(self) -> dict[str, Any]:
        """Serialize to the REST request shape."""
        return {
            "name": self.name,
            "position": {"row": self.row, "column": self.column},
            "size": {"rowSpan": self.ROW_SPAN, "columnSpan": self.COLUMN_SPAN},
            "contributionId": self.contribution_id,
            "settings": self.settings,
        }


@dataclass(frozen=True)
class Dashboard:
    """Represents a created dashboard."""

    id: str
    name: str
    widgets: list[Widget] = field(default_factory=list)
    url: str | None = None


@dataclass
class ProvisioningResult:
    """
    Observable outcome of a provisioning workflow run.

    Attributes:
        repository: Repository the workflow ran against
        feature_branch: Feature branch ref after it was created or reset
        pushed_files: Number of files included in the push
        pipeline: Existing or created build pipeline
        work_item_ids: Ids of the created work items, in template order
        pull_request: Opened pull request, None when skipped
        dashboard: Created dashboard, if requested
        report_path: Written report file, if requested
    """

    repository: Repository
    feature_branch: GitRef | None = None
    pushed_files: int = 0
    pipeline: Pipeline | None = None
    work_item_ids: list[int] = field(default_factory=list)
    pull_request: PullRequest | None = None
    dashboard: Dashboard | None = None
    report_path: Path | None = None

    @property
    def pull_request_skipped(self) -> bool:
        """Whether the pull request step was skipped for lack of work items."""
        return self.pull_request is None
