"""Settings and work item template loading.

Settings are read once at startup from a JSON or YAML file and the process
environment, validated, and then passed explicitly into every component. They
are immutable after load and never written back by the tool.

Settings file (``appsettings.json`` by default, the ``AzureDevOps`` section is
optional):

    ```json
    {
      "AzureDevOps": {
        "Organization": "myorg",
        "Project": "myproject",
        "Repository": {"Name": "myrepo", "MainBranch": "main", "FeatureBranch": "feature"},
        "Pipeline": {"Name": "myrepo-CI", "Folder": "ci", "YamlPath": "azure-pipelines.yml"},
        "WorkItems": {"Type": "User Story", "TemplatesPath": "templates.json"},
        "PullRequest": {"Title": "Add user stories", "DescriptionTemplate": "Links {0} items"}
      }
    }
    ```

Environment overrides win over the file:
    AZURE_DEVOPS_ORG, AZURE_DEVOPS_PROJECT, AZURE_DEVOPS_PAT, and any nested key
    spelled ``AzureDevOps__Section__Key`` (e.g. ``AzureDevOps__Repository__Name``).

Template file: a JSON or YAML list of records with the keys Title, Description,
AcceptanceCriteria, StoryPoints, Priority, Tags and State.

Raises:
    ConfigurationError: When the settings file is malformed or a required key is missing
    TemplateFileError: When the template file is missing or malformed
"""

import json
import logging
import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from .exceptions import ConfigurationError, TemplateFileError

DEFAULT_SETTINGS_FILE = "appsettings.json"
SECTION_NAME = "AzureDevOps"
ENV_NESTED_PREFIX = f"{SECTION_NAME}__"
ENV_OVERRIDES = {
    "AZURE_DEVOPS_ORG": "Organization",
    "AZURE_DEVOPS_PROJECT": "Project",
    "AZURE_DEVOPS_PAT": "PersonalAccessToken",
}
YAML_SUFFIXES = (".yml", ".yaml")


class _FrozenModel(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")


class RepositorySettings(_FrozenModel):
    """
    Repository and branch settings.

    Attributes:
        name: Repository name, defaults to the project name
        main_branch: Branch that must already exist and seeds the feature branch
        feature_branch: Disposable automation branch, reset to main on every run
        allow_fallback: Use the first listed repository when no name matches
    """

    name: str | None = Field(None, alias="Name")
    main_branch: str = Field("main", alias="MainBranch", min_length=1)
    feature_branch: str = Field("feature", alias="FeatureBranch", min_length=1)
    allow_fallback: bool = Field(True, alias="AllowFallback")


class PipelineSettings(_FrozenModel):
    """
    Build pipeline settings.

    Attributes:
        name: Pipeline name, also used to detect an existing pipeline
        folder: Optional pipeline folder
        yaml_path: Path of the YAML definition inside the repository
        match: How an existing pipeline is detected ('substring' or 'exact')
        fail_on_error: Whether a rejected pipeline creation aborts the run
    """

    name: str | None = Field(None, alias="Name")
    folder: str | None = Field(None, alias="Folder")
    yaml_path: str = Field("azure-pipelines.yml", alias="YamlPath", min_length=1)
    match: Literal["substring", "exact"] = Field("substring", alias="Match")
    fail_on_error: bool = Field(True, alias="FailOnError")

    @field_validator("match", mode="before")
    @classmethod
    def _lower_match(cls, value: Any) -> Any:
        return value.lower() if isinstance(value, str) else value


class WorkItemSettings(_FrozenModel):
    """Work item type and template file location."""

    type: str = Field("User Story", alias="Type", min_length=1)
    templates_path: str = Field("templates.json", alias="TemplatesPath", min_length=1)


class PullRequestSettings(_FrozenModel):
    """Pull request title and description template ({0} or {count} is the linked item count)."""

    title: str = Field("Add user stories from template", alias="Title", min_length=1)
    description_template: str = Field(
        "Automated PR with {0} linked work items",
        alias="DescriptionTemplate",
    )


class Settings(_FrozenModel):
    """Complete provisioner settings."""

    organization: str = Field(alias="Organization", min_length=1)
    project: str = Field(alias="Project", min_length=1)
    personal_access_token: str | None = Field(None, alias="PersonalAccessToken", repr=False)
    repository: RepositorySettings = Field(default_factory=RepositorySettings, alias="Repository")
    pipeline: PipelineSettings = Field(default_factory=PipelineSettings, alias="Pipeline")
    work_items: WorkItemSettings = Field(default_factory=WorkItemSettings, alias="WorkItems")
    pull_request: PullRequestSettings = Field(default_factory=PullRequestSettings, alias="PullRequest")

    @model_validator(mode="before")
    @classmethod
    def _legacy_work_item_type(cls, data: Any) -> Any:
        # Older flat config files carry the work item type at the top level
        if isinstance(data, dict) and data.get("WorkItemType"):
            data = dict(data)
            work_items = dict(data.get("WorkItems") or {})
            work_items.setdefault("Type", data.pop("WorkItemType"))
            data["WorkItems"] = work_items
        return data

    @property
    def repository_name(self) -> str:
        """Configured repository name, or the project's default repository."""
        return self.repository.name or self.project

    def validate_for_provisioning(self) -> None:
        """Check the keys the full workflow needs before any network call is made."""
        if not self.pipeline.name:
            msg = "Missing required setting: Pipeline.Name"
            raise ConfigurationError(msg)
        try:
            self.pull_request.description_template.format(0, count=0)
        except (IndexError, KeyError, ValueError) as e:
            msg = f"Invalid PullRequest.DescriptionTemplate: {e}"
            raise ConfigurationError(msg) from e


class UserStoryTemplate(_FrozenModel):
    """One work item template; each template yields exactly one created work item."""

    title: str = Field(alias="Title", min_length=1)
    description: str = Field("", alias="Description")
    acceptance_criteria: str = Field("", alias="AcceptanceCriteria")
    story_points: int = Field(0, alias="StoryPoints")
    priority: int = Field(0, alias="Priority")
    tags: str = Field("", alias="Tags")
    state: str = Field("", alias="State")

    @field_validator("tags", mode="before")
    @classmethod
    def _join_tags(cls, value: Any) -> Any:
        if isinstance(value, list | tuple):
            return "; ".join(str(tag) for tag in value)
        return value


def _describe(error: ValidationError) -> str:
    """Turn the first pydantic error into a one-line message."""
    first = error.errors()[0]
    location = ".".join(str(part) for part in first["loc"]) or "<root>"
    return f"{location}: {first['msg']}"


def _read_document(path: Path) -> Any:
    """Parse a JSON or YAML file, chosen by its suffix."""
    text = path.read_text(encoding="utf-8")
    if path.suffix.lower() in YAML_SUFFIXES:
        return yaml.safe_load(text)
    return json.loads(text)


def _lookup_key(mapping: Mapping[str, Any], key: str) -> str:
    """Return the existing key matching key case-insensitively, else key itself."""
    for existing in mapping:
        if existing.lower() == key.lower():
            return existing
    return key


def _apply_environment(data: dict[str, Any], environ: Mapping[str, str]) -> dict[str, Any]:
    """Overlay environment variables onto the file settings."""
    merged = dict(data)
    for name, value in environ.items():
        if not value:
            continue
        if name in ENV_OVERRIDES:
            merged[_lookup_key(merged, ENV_OVERRIDES[name])] = value
        elif name.startswith(ENV_NESTED_PREFIX):
            parts = [part for part in name[len(ENV_NESTED_PREFIX) :].split("__") if part]
            if not parts:
                continue
            target = merged
            for part in parts[:-1]:
                key = _lookup_key(target, part)
                section = target.get(key)
                section = dict(section) if isinstance(section, dict) else {}
                target[key] = section
                target = section
            target[_lookup_key(target, parts[-1])] = value
            logging.debug("config: applied environment override %s", name)
    return merged


def load_settings(
    path: str | Path | None = None,
    environ: Mapping[str, str] | None = None,
) -> Settings:
    """
    Load settings from a file and the environment.

    Args:
        path: Settings file; when omitted, appsettings.json is used if present
        environ: Environment mapping, defaults to os.environ

    Returns:
        Validated, immutable Settings

    Raises:
        ConfigurationError: When the file is missing (explicit path), malformed,
            or a required key is absent
    """
    environ = os.environ if environ is None else environ
    explicit = path is not None
    settings_path = Path(path) if path is not None else Path(DEFAULT_SETTINGS_FILE)

    data: Any = {}
    if settings_path.is_file():
        try:
            data = _read_document(settings_path) or {}
        except (OSError, json.JSONDecodeError, yaml.YAMLError) as e:
            msg = f"Malformed settings file {settings_path}: {e}"
            raise ConfigurationError(msg) from e
        logging.info("config: loaded settings from %s", settings_path)
    elif explicit:
        msg = f"Settings file not found: {settings_path}"
        raise ConfigurationError(msg)

    if not isinstance(data, dict):
        msg = f"Malformed settings file {settings_path}: expected a mapping"
        raise ConfigurationError(msg)
    section = data.get(SECTION_NAME, data)
    if not isinstance(section, dict):
        msg = f"Malformed settings file {settings_path}: '{SECTION_NAME}' must be a mapping"
        raise ConfigurationError(msg)

    try:
        return Settings.model_validate(_apply_environment(section, environ))
    except ValidationError as e:
        msg = f"Invalid settings: {_describe(e)}"
        raise ConfigurationError(msg) from e


def load_templates(path: str | Path) -> list[UserStoryTemplate]:
    """
    Load the ordered list of work item templates.

    Raises:
        TemplateFileError: When the file is missing, unparsable, not a list,
            or an entry is invalid
    """
    template_path = Path(path)
    if not template_path.is_file():
        raise TemplateFileError(str(template_path), "file not found")
    try:
        data = _read_document(template_path)
    except (OSError, json.JSONDecodeError, yaml.YAMLError) as e:
        raise TemplateFileError(str(template_path), str(e)) from e

    if not isinstance(data, list):
        raise TemplateFileError(str(template_path), "expected a list of templates")

    templates = []
    for index, entry in enumerate(data):
        try:
            templates.append(UserStoryTemplate.model_validate(entry))
        except ValidationError as e:
            raise TemplateFileError(str(template_path), f"entry {index}: {_describe(e)}") from e

    logging.info("config: loaded %d work item templates from %s", len(templates), template_path)
    return templates
