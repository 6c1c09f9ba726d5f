"""Command-line output formatting for provisioning results.

This module provides the output formatters for the provisioner's commands. A
printer renders either a full ProvisioningResult (from the ``provision``
command) or a single created resource (repository, pipeline, pull request,
work item ids, raw Azure CLI output).

Key Components:
    ResultPrinter: Abstract base class defining the output contract and stream handling
    PlainPrinter: Simple text output for logs and basic terminals
    RichPrinter: Rich text console output with tables and styling
    JSONPrinter: Structured JSON output for programmatic consumption

Output Handling:
    - All printers support both stdout and file output
    - UTF-8 encoding for file output
    - Dataclasses, enums and paths are converted to plain values by to_data

Example:
    ```python
    from ado_provisioner.cli.printer import RichPrinter, JSONPrinter

    result = workflow.run(templates)
    RichPrinter(result).print()
    JSONPrinter(result).print(output_file="provisioning.json")
    ```
"""

import dataclasses
import json
import sys
from abc import ABC, abstractmethod
from enum import Enum
from pathlib import Path
from typing import Any, TextIO

from rich.console import Console
from rich.table import Table

from ado_provisioner.core.models import ProvisioningResult


def to_data(value: Any) -> Any:
    """Convert results and resources into JSON-serializable values."""
    if isinstance(value, ProvisioningResult):
        data = to_data(dataclasses.asdict(value))
        data["pull_request_skipped"] = value.pull_request_skipped
        return data
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return to_data(dataclasses.asdict(value))
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, Path):
        return str(value)
    if isinstance(value, dict):
        return {str(key): to_data(item) for key, item in value.items()}
    if isinstance(value, list | tuple):
        return [to_data(item) for item in value]
    return value


def summary_rows(result: ProvisioningResult) -> list[tuple[str, str]]:
    """(step, outcome) rows describing a provisioning run."""
    repository = result.repository
    rows = [("Repository", f"{repository.name} ({repository.web_url or repository.id})")]
    if result.feature_branch is not None:
        rows.append(("Feature branch", f"{result.feature_branch.branch} @ {result.feature_branch.object_id}"))
    rows.append(("Pushed files", str(result.pushed_files)))
    if result.pipeline is not None:
        rows.append(("Pipeline", f"{result.pipeline.name} (id {result.pipeline.id})"))
    else:
        rows.append(("Pipeline", "not created"))
    ids = ", ".join(f"#{work_item_id}" for work_item_id in result.work_item_ids)
    rows.append(("Work items", ids or "none"))
    if result.pull_request_skipped:
        rows.append(("Pull request", "skipped (no work items)"))
    else:
        pull_request = result.pull_request
        rows.append(("Pull request", f"#{pull_request.pull_request_id} {pull_request.title}"))
    if result.dashboard is not None:
        rows.append(("Dashboard", f"{result.dashboard.name} ({len(result.dashboard.widgets)} widgets)"))
    if result.report_path is not None:
        rows.append(("Report", str(result.report_path)))
    return rows


def resource_rows(resource: Any) -> list[tuple[str, str]]:
    """(field, value) rows for a single resource or raw command output."""
    data = to_data(resource)
    if isinstance(data, dict):
        return [(key, "" if value is None else str(value)) for key, value in data.items()]
    if isinstance(data, list):
        return [(str(index), str(item)) for index, item in enumerate(data, 1)]
    return [("result", "" if data is None else str(data))]


class ResultPrinter(ABC):
    """Base printer for command results."""

    _output: TextIO | None = None

    def __init__(self, result: Any, title: str | None = None) -> None:
        """Initialize printer with a ProvisioningResult or a single resource."""
        self.result = result
        self.title = title

    def print(self, output_file: str | None = None) -> None:
        """
        Print the result to the given output file.

        Args:
            output_file: Path to output file, or None for stdout
        """
        if output_file:
            with Path(output_file).open("w", encoding="utf-8") as output:
                self._output = output
                self._print_content()
        else:
            # Don't close stdout
            self._output = sys.stdout
            self._print_content()

    def _rows(self) -> list[tuple[str, str]]:
        if isinstance(self.result, ProvisioningResult):
            return summary_rows(self.result)
        return resource_rows(self.result)

    @abstractmethod
    def _print_content(self) -> None:
        """Print content to the configured output stream."""

    @abstractmethod
    def _write(self, content: str | Table | dict) -> None:
        """Write content to configured output stream."""


class PlainPrinter(ResultPrinter):
    """Result printer with plain text output."""

    def _write(self, content: str = "") -> None:
        """Write content to configured output."""
        print(content, file=self._output)

    def _print_content(self) -> None:
        if self.title:
            self._write(self.title)
        rows = self._rows()
        width = max((len(label) for label, _ in rows), default=0)
        for label, value in rows:
            self._write(f"{label.ljust(width)}  {value}")


class RichPrinter(ResultPrinter):
    """Result printer with rich text formatting."""

    def _write(self, content: str | Table) -> None:
        """Write content to configured output."""
        self._console.print(content)

    def _print_content(self) -> None:
        # Initialize console with the current output stream
        self._console = Console(file=self._output)

        provisioning = isinstance(self.result, ProvisioningResult)
        table = Table(title=self.title or ("Provisioning result" if provisioning else None))
        table.add_column("Step" if provisioning else "Field", style="cyan")
        table.add_column("Outcome" if provisioning else "Value", style="green")

        for label, value in self._rows():
            style = "yellow" if value.startswith(("skipped", "not created", "none")) else None
            table.add_row(label, value, style=style)

        self._write(table)


class JSONPrinter(ResultPrinter):
    """Result printer with JSON output."""

    def _write(self, content: dict) -> None:
        """Write JSON content to configured output."""
        json.dump(content, self._output, indent=2)
        self._output.write("\n")

    def _print_content(self) -> None:
        self._write(to_data(self.result))


PRINTERS: dict[str, type[ResultPrinter]] = {
    "plain": PlainPrinter,
    "rich": RichPrinter,
    "json": JSONPrinter,
}
