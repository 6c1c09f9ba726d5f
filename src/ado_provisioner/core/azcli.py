"""Resource creation through the Azure CLI ``az devops`` extension.

An alternative to the REST client for the four single-resource create
commands. Each call runs one ``az`` invocation with the token passed as
``AZURE_DEVOPS_EXT_PAT`` and ``--output json`` requested; the parsed output is
returned, or None when the command printed nothing or something that is not
JSON.

Example:
    ```python
    az = AzureCli(settings, token="pat")
    repository = az.create_repository("myrepo")
    ```

Raises:
    CommandExecutionError: When ``az`` exits with a non-zero status or times out
"""

import json
import logging
from itertools import takewhile
from typing import Any

from ado_provisioner.utils.runner import CommandRunner

from .config import Settings
from .exceptions import CommandExecutionError


class AzureCli:
    """Thin wrapper translating create operations into ``az`` invocations."""

    PROGRAM = "az"
    TOKEN_ENV_VAR = "AZURE_DEVOPS_EXT_PAT"
    BASE_HOST = "https://dev.azure.com"

    def __init__(self, settings: Settings, token: str | None, runner: CommandRunner | None = None) -> None:
        self.settings = settings
        self.token = token
        self.runner = runner or CommandRunner()

    @property
    def organization_url(self) -> str:
        return f"{self.BASE_HOST}/{self.settings.organization}"

    def _scope(self) -> list[str]:
        return ["--org", self.organization_url, "--project", self.settings.project, "--output", "json"]

    def run(self, *arguments: str) -> Any:
        """Run ``az`` with the organization scope appended and parse its output."""
        command = [self.PROGRAM, *arguments, *self._scope()]
        environment = {self.TOKEN_ENV_VAR: self.token} if self.token else {}
        label = " ".join(takewhile(lambda argument: not argument.startswith("-"), arguments))

        logging.info("azcli: running 'az %s'", label)
        result = self.runner.run(command, environment)
        if not result.success:
            raise CommandExecutionError(label, result.exit_code, result.stderr)
        return self.parse_output(result.stdout)

    @staticmethod
    def parse_output(stdout: str) -> Any:
        """Parse JSON output; empty or non-JSON output yields None."""
        if not stdout or not stdout.strip():
            return None
        try:
            return json.loads(stdout)
        except json.JSONDecodeError:
            logging.debug("azcli: output is not JSON, ignoring it")
            return None

    def create_repository(self, name: str) -> Any:
        return self.run("repos", "create", "--name", name)

    def create_pipeline(self, name: str, repository: str, yaml_path: str, folder: str | None = None) -> Any:
        arguments = [
            "pipelines",
            "create",
            "--name",
            name,
            "--repository",
            repository,
            "--repository-type",
            "tfsgit",
            "--branch",
            self.settings.repository.main_branch,
            "--yml-path",
            yaml_path,
            "--skip-first-run",
            "true",
        ]
        if folder:
            arguments += ["--folder-path", folder]
        return self.run(*arguments)

    def create_work_item(self, title: str, description: str | None = None, work_item_type: str | None = None) -> Any:
        arguments = [
            "boards",
            "work-item",
            "create",
            "--type",
            work_item_type or self.settings.work_items.type,
            "--title",
            title,
        ]
        if description:
            arguments += ["--description", description]
        return self.run(*arguments)

    def create_pull_request(
        self,
        repository: str,
        source: str,
        target: str,
        title: str,
        description: str | None = None,
        work_item_ids: list[int] | None = None,
    ) -> Any:
        arguments = [
            "repos",
            "pr",
            "create",
            "--repository",
            repository,
            "--source-branch",
            source,
            "--target-branch",
            target,
            "--title",
            title,
        ]
        if description:
            arguments += ["--description", description]
        if work_item_ids:
            arguments += ["--work-items", *(str(work_item_id) for work_item_id in work_item_ids)]
        return self.run(*arguments)
