"""Custom exceptions for repository provisioning.

This module defines the exception hierarchy used throughout the provisioner.
Every failure in the workflow is fatal for the run: nothing here is caught and
retried automatically, so each exception carries enough context (the step, the
platform status code and the response body) for a single human-readable line.

Exception Categories:
    Configuration: Missing or malformed settings and template files
    Authentication: Missing, unreadable or rejected credentials
    Provisioning: Non-2xx platform responses during create/update calls
    Command: Failures of the external Azure CLI binary

Exception Hierarchy:
    ADOProvisionerError
    ├── ConfigurationError
    │   └── TemplateFileError
    ├── AuthenticationError
    │   └── CredentialExistsError
    ├── ProvisioningError
    │   ├── ConflictError
    │   ├── BranchNotFoundError
    │   └── WorkItemBatchError
    └── CommandExecutionError

Usage:
    ```python
    from ado_provisioner.core.exceptions import (
        ConflictError,
        ProvisioningError,
    )

    try:
        branches.push_content(repository, "feature", files)
    except ConflictError:
        # The branch moved since its tip was read; refresh and push again
        ...
    except ProvisioningError as e:
        print(f"{e.step} failed with HTTP {e.status_code}: {e.body}")
    ```

Note:
    All exceptions inherit from ADOProvisionerError to allow catching
    all package-specific exceptions with a single except clause.
"""


class ADOProvisionerError(Exception):
    """Base exception for ADO Provisioner."""


class ConfigurationError(ADOProvisionerError):
    """Raised when settings are missing or malformed."""

    def __init__(self, message: str = "Invalid configuration") -> None:
        super().__init__(message)


class TemplateFileError(ConfigurationError):
    """Raised when the work item template file cannot be loaded."""

    def __init__(self, path: str, reason: str) -> None:
        self.path = path
        super().__init__(f"Cannot load work item templates from {path}: {reason}")


class AuthenticationError(ADOProvisionerError):
    """Raised when authentication fails."""

    def __init__(self, message: str = "Failed to authenticate with Azure DevOps") -> None:
        super().__init__(message)


class CredentialExistsError(AuthenticationError):
    """Raised when saving a token would overwrite a stored one."""

    def __init__(self, path: str) -> None:
        self.path = path
        super().__init__(f"A token is already stored at {path}. Use --force to overwrite it")


class ProvisioningError(ADOProvisionerError):
    """
    Raised when the platform rejects a create or update request.

    Attributes:
        step: Name of the workflow step that failed (e.g. 'create repository')
        status_code: HTTP status code returned by the platform, if any
        body: Raw response body returned by the platform, if any
    """

    def __init__(
        self,
        step: str,
        status_code: int | None = None,
        body: str | None = None,
        hint: str | None = None,
    ) -> None:
        self.step = step
        self.status_code = status_code
        self.body = body
        self.hint = hint
        super().__init__(self._format())

    def _format(self) -> str:
        message = f"{self.step} failed"
        if self.status_code is not None:
            message += f". Status: {self.status_code}"
        if self.body:
            message += f". Error: {self.body}"
        if self.hint:
            message += f". {self.hint}"
        return message


class ConflictError(ProvisioningError):
    """Raised when a ref update is rejected because the supplied old commit id is stale."""


class BranchNotFoundError(ProvisioningError):
    """Raised when a branch that must already exist is missing."""

    def __init__(self, repository: str, branch: str) -> None:
        self.repository = repository
        self.branch = branch
        super().__init__(
            f"read branch '{branch}'",
            hint=f"Branch '{branch}' does not exist in repository '{repository}'",
        )


class WorkItemBatchError(ProvisioningError):
    """Raised when a work item creation fails; carries the ids created before the failure."""

    def __init__(
        self,
        step: str,
        status_code: int | None,
        body: str | None,
        created_ids: list[int],
    ) -> None:
        self.created_ids = list(created_ids)
        super().__init__(step, status_code, body)


class CommandExecutionError(ADOProvisionerError):
    """Raised when the external Azure CLI exits with a non-zero status."""

    def __init__(self, command: str, exit_code: int, stderr: str = "") -> None:
        self.command = command
        self.exit_code = exit_code
        self.stderr = stderr
        detail = stderr.strip() or "no output"
        super().__init__(f"Azure CLI failed ({command}, exit code {exit_code}): {detail}")
