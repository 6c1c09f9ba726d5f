"""Utility components for the Azure DevOps provisioner.

Components:
    ProjectFileScanner: Selects the local project files pushed to the
        feature branch, honoring include patterns, exclusions and .gitignore.
    CommandRunner: Runs external commands (the Azure CLI) with a timeout.

Example:
    ```python
    from ado_provisioner.utils import ProjectFileScanner

    # Returns a sorted list of (path, content) tuples
    files = ProjectFileScanner("path/to/project").scan()
    ```
"""

from .runner import CommandResult, CommandRunner
from .scanner import ProjectFileScanner

__all__ = ["CommandResult", "CommandRunner", "ProjectFileScanner"]
