"""End-to-end provisioning workflow.

Runs the provisioning steps in order, each one feeding the next:

    repository -> feature branch -> push -> pipeline -> work items
    -> pull request -> (optional) dashboard / report

Any error aborts the run; nothing already created is rolled back. Settings are
validated and the files to push are read before the first network call, so a
bad configuration never leaves a half-provisioned project behind.

Example:
    ```python
    settings = load_settings("appsettings.json")
    templates = load_templates(settings.work_items.templates_path)
    credential = CredentialProvider(settings).resolve()

    with AzureDevOpsClient.from_credential(settings, credential) as client:
        result = ProvisioningWorkflow(client, settings).run(templates)
    print(result.pull_request.pull_request_id)
    ```
"""

import logging
from collections.abc import Sequence
from pathlib import Path

from ado_provisioner.utils.scanner import ProjectFileScanner

from .branch import BranchManager
from .client import AzureDevOpsClient
from .config import Settings, UserStoryTemplate
from .exceptions import ConfigurationError
from .models import ProvisioningResult, PushMode
from .pipeline import PipelineProvisioner
from .pull_request import PullRequestOpener
from .report import DashboardBuilder, ReportBuilder
from .repository import RepositoryProvisioner
from .work_items import WorkItemBatchCreator


class ProvisioningWorkflow:
    """Wires the provisioning components together for one run."""

    def __init__(self, client: AzureDevOpsClient, settings: Settings) -> None:
        self.client = client
        self.settings = settings
        self.repositories = RepositoryProvisioner(client, settings)
        self.branches = BranchManager(client, settings)
        self.pipelines = PipelineProvisioner(client, settings)
        self.work_items = WorkItemBatchCreator(client, settings)
        self.pull_requests = PullRequestOpener(client, settings)

    def collect_files(
        self,
        push_mode: PushMode,
        project_root: str | Path,
        settings_path: str | Path | None = None,
    ) -> list[tuple[str, str]]:
        """
        Read the files the push step will send, without touching the network.

        The settings file the run was loaded from is never part of a tree push.
        """
        root = Path(project_root)
        if push_mode is PushMode.NONE:
            return []
        if push_mode is PushMode.PROJECT:
            exclude_files = [settings_path] if settings_path is not None else []
            return ProjectFileScanner(root, exclude_files=exclude_files).scan()

        yaml_path = self.settings.pipeline.yaml_path.lstrip("/")
        local = root / yaml_path
        if not local.is_file():
            msg = f"Pipeline definition not found: {local}"
            raise ConfigurationError(msg)
        return [(yaml_path, local.read_text(encoding="utf-8"))]

    def run(
        self,
        templates: Sequence[UserStoryTemplate],
        push_mode: PushMode = PushMode.PIPELINE,
        project_root: str | Path = ".",
        dashboard_name: str | None = None,
        report_path: str | Path | None = None,
        settings_path: str | Path | None = None,
    ) -> ProvisioningResult:
        """
        Run every provisioning step in order.

        Args:
            templates: Work item templates, one work item each
            push_mode: What to push to the feature branch
            project_root: Local directory the pushed files are read from
            dashboard_name: Create a dashboard with this name when given
            report_path: Write a status report to this file when given
            settings_path: Settings file the run was loaded from, kept out of pushes

        Returns:
            ProvisioningResult describing everything that was created or found

        Raises:
            ConfigurationError: When settings or local files are invalid
            AuthenticationError: When the platform rejects the credentials
            ProvisioningError: When any step is rejected by the platform
        """
        self.settings.validate_for_provisioning()
        files = self.collect_files(push_mode, project_root, settings_path)

        logging.info("workflow: provisioning %s/%s", self.settings.organization, self.settings.project)
        repository = self.repositories.ensure_repository()
        result = ProvisioningResult(repository=repository)

        result.feature_branch = self.branches.ensure_feature_branch(repository)
        if files:
            self._push(result, files, push_mode)

        result.pipeline = self.pipelines.ensure_build_pipeline(repository)
        result.work_item_ids = self.work_items.create_work_items(templates)
        result.pull_request = self.pull_requests.open_pull_request(repository, result.work_item_ids)

        if dashboard_name:
            result.dashboard = DashboardBuilder(self.client, self.settings).create_dashboard(
                dashboard_name,
                result.work_item_ids,
            )
        if report_path:
            result.report_path = ReportBuilder(self.client, self.settings).write(report_path)

        logging.info(
            "workflow: done, %d work items, pull request %s",
            len(result.work_item_ids),
            "skipped" if result.pull_request_skipped else f"#{result.pull_request.pull_request_id}",
        )
        return result

    def _push(self, result: ProvisioningResult, files: list[tuple[str, str]], push_mode: PushMode) -> None:
        branch = self.settings.repository.feature_branch
        if push_mode is PushMode.PIPELINE:
            path, content = files[0]
            self.branches.push_file(result.repository, branch, path, content)
        else:
            self.branches.push_content(result.repository, branch, files)
        result.pushed_files = len(files)
