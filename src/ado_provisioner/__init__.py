"""Azure DevOps Provisioner.

A tool that prepares an Azure DevOps project for a codebase: it ensures the
repository and a feature branch exist, pushes the project files, ensures a
YAML build pipeline, creates work items from templates and opens a pull
request linking them.

Package Structure:
    core: Core functionality for provisioning and API interactions
        - config: Settings and work item template loading
        - credentials: Token resolution and the local secret store
        - client: Azure DevOps API client with authentication handling
        - repository, branch, pipeline, work_items, pull_request: Provisioning steps
        - report: Status report and dashboard generation
        - workflow: End-to-end provisioning workflow
        - azcli: Resource creation through the Azure CLI
        - models: Data models for resources and results
        - exceptions: Error types for graceful error handling

    cli: Command-line interface components
        - commands: CLI argument parsing and execution
        - printer: Output formatting in various formats (rich, plain, JSON)

    utils: Utility functions and helpers
        - scanner: Local project file selection
        - runner: External command execution

Examples:
    CLI Usage:
        ```bash
        # Store a PAT, then provision from appsettings.json
        $ adoprov auth login
        $ adoprov provision --push project --dashboard "Sprint 1"
        ```

    Programmatic Usage:
        ```python
        from ado_provisioner import (
            AzureDevOpsClient,
            CredentialProvider,
            ProvisioningWorkflow,
            load_settings,
            load_templates,
        )

        settings = load_settings("appsettings.json")
        templates = load_templates(settings.work_items.templates_path)
        credential = CredentialProvider(settings).resolve()

        with AzureDevOpsClient.from_credential(settings, credential) as client:
            result = ProvisioningWorkflow(client, settings).run(templates)
        ```
"""

__version__ = "0.1.0"

from ado_provisioner.core import (
    ADOProvisionerError,
    AzureDevOpsClient,
    CredentialProvider,
    ProvisioningResult,
    ProvisioningWorkflow,
    PushMode,
    Settings,
    UserStoryTemplate,
    load_settings,
    load_templates,
)

__all__ = [
    "ADOProvisionerError",
    "AzureDevOpsClient",
    "CredentialProvider",
    "ProvisioningResult",
    "ProvisioningWorkflow",
    "PushMode",
    "Settings",
    "UserStoryTemplate",
    "__version__",
    "load_settings",
    "load_templates",
]
