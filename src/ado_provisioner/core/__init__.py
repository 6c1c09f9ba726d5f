"""Core subpackage for Azure DevOps project provisioning.

This subpackage provides the components that drive the Azure DevOps REST API:
settings and credentials, the API client, the individual provisioning steps,
and the workflow that chains them together.

Modules:
    config: Settings and work item template loading
    credentials: Token resolution and the local secret store
    client: Azure DevOps REST client with retrying reads
    repository: Repository lookup and creation
    branch: Feature branch management and content pushes
    pipeline: Build pipeline provisioning
    work_items: Work item batch creation from templates
    pull_request: Pull request creation
    report: Status report and dashboard generation
    workflow: End-to-end provisioning workflow
    azcli: Resource creation through the Azure CLI
    models: Data models for resources and results
    exceptions: Error types and hierarchies for graceful error handling

Example:
    >>> from ado_provisioner.core import (
    ...     AzureDevOpsClient,
    ...     CredentialProvider,
    ...     ProvisioningWorkflow,
    ...     load_settings,
    ...     load_templates,
    ... )
    >>>
    >>> settings = load_settings("appsettings.json")
    >>> credential = CredentialProvider(settings).resolve()
    >>> with AzureDevOpsClient.from_credential(settings, credential) as client:
    ...     result = ProvisioningWorkflow(client, settings).run(
    ...         load_templates(settings.work_items.templates_path)
    ...     )
    ...     print(f"Created {len(result.work_item_ids)} work items")
"""

from ado_provisioner.core.azcli import AzureCli
from ado_provisioner.core.branch import BranchManager
from ado_provisioner.core.client import AzureDevOpsClient
from ado_provisioner.core.config import (
    PipelineSettings,
    PullRequestSettings,
    RepositorySettings,
    Settings,
    UserStoryTemplate,
    WorkItemSettings,
    load_settings,
    load_templates,
)
from ado_provisioner.core.credentials import AuthScheme, Credential, CredentialProvider, SecretStore
from ado_provisioner.core.exceptions import (
    ADOProvisionerError,
    AuthenticationError,
    BranchNotFoundError,
    CommandExecutionError,
    ConfigurationError,
    ConflictError,
    CredentialExistsError,
    ProvisioningError,
    TemplateFileError,
    WorkItemBatchError,
)
from ado_provisioner.core.models import (
    ZERO_OBJECT_ID,
    ChangeType,
    Dashboard,
    FileChange,
    GitRef,
    Pipeline,
    PipelineRun,
    ProvisioningResult,
    PullRequest,
    PushMode,
    RefUpdate,
    RefUpdateResult,
    Repository,
    Widget,
    WorkItem,
)
from ado_provisioner.core.pipeline import PipelineProvisioner
from ado_provisioner.core.pull_request import PullRequestOpener
from ado_provisioner.core.report import DashboardBuilder, ReportBuilder
from ado_provisioner.core.repository import RepositoryProvisioner
from ado_provisioner.core.work_items import WorkItemBatchCreator
from ado_provisioner.core.workflow import ProvisioningWorkflow

__all__ = [  # noqa: RUF022
    # Main components
    "AzureDevOpsClient",
    "AzureCli",
    "BranchManager",
    "CredentialProvider",
    "DashboardBuilder",
    "PipelineProvisioner",
    "ProvisioningWorkflow",
    "PullRequestOpener",
    "ReportBuilder",
    "RepositoryProvisioner",
    "SecretStore",
    "WorkItemBatchCreator",
    # Configuration
    "PipelineSettings",
    "PullRequestSettings",
    "RepositorySettings",
    "Settings",
    "UserStoryTemplate",
    "WorkItemSettings",
    "load_settings",
    "load_templates",
    # Resource models
    "AuthScheme",
    "ChangeType",
    "Credential",
    "Dashboard",
    "FileChange",
    "GitRef",
    "Pipeline",
    "PipelineRun",
    "ProvisioningResult",
    "PullRequest",
    "PushMode",
    "RefUpdate",
    "RefUpdateResult",
    "Repository",
    "Widget",
    "WorkItem",
    "ZERO_OBJECT_ID",
    # Exceptions
    "ADOProvisionerError",
    "AuthenticationError",
    "BranchNotFoundError",
    "CommandExecutionError",
    "ConfigurationError",
    "ConflictError",
    "CredentialExistsError",
    "ProvisioningError",
    "TemplateFileError",
    "WorkItemBatchError",
]
