"""Status report and dashboard generation.

Key Components:
    ReportBuilder: Reads back repository, pipeline and work item state and
        renders it as a plain-text document.
    DashboardBuilder: Creates a project dashboard holding one widget per
        created work item, stacked in a single column.

Both read sequentially and let any error propagate; a report with silently
missing sections is not produced.
"""

import logging
from pathlib import Path

from .client import AzureDevOpsClient
from .config import Settings
from .models import Dashboard, Pipeline, Widget


def escape_wiql(value: str) -> str:
    """Escape a string literal for use inside a WIQL query."""
    return value.replace("'", "''")


class ReportBuilder:
    """Renders the provisioned state of the project as plain text."""

    TITLE = "Azure DevOps provisioning report"

    def __init__(self, client: AzureDevOpsClient, settings: Settings) -> None:
        self.client = client
        self.settings = settings

    def build(self) -> str:
        """Query the platform and return the report text."""
        lines = [
            self.TITLE,
            "=" * len(self.TITLE),
            "",
            f"Organization: {self.settings.organization}",
            f"Project: {self.settings.project}",
            "",
        ]
        lines += self._repository_section()
        lines += self._pipeline_section()
        lines += self._work_item_section()
        return "\n".join(lines).rstrip() + "\n"

    def write(self, output_path: str | Path) -> Path:
        """Build the report and write it to a UTF-8 text file."""
        path = Path(output_path)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(self.build(), encoding="utf-8")
        logging.info("report: written to %s", path)
        return path

    @staticmethod
    def _heading(text: str) -> list[str]:
        return [text, "-" * len(text)]

    def _repository_section(self) -> list[str]:
        repository = self.client.get_repository(self.settings.repository_name)
        return [
            *self._heading("Repository"),
            f"Repository: {repository.name}",
            f"Repository URL: {repository.web_url or 'n/a'}",
            "",
        ]

    def _matching_pipelines(self, pipelines: list[Pipeline]) -> list[Pipeline]:
        name = self.settings.pipeline.name
        if not name:
            return pipelines
        if self.settings.pipeline.match == "exact":
            return [p for p in pipelines if p.name == name]
        return [p for p in pipelines if name in p.name]

    def _pipeline_section(self) -> list[str]:
        lines = self._heading("Build Pipeline")
        pipelines = self._matching_pipelines(self.client.list_pipelines())
        if not pipelines:
            lines.append("No pipeline found")
        for pipeline in pipelines:
            lines += [
                f"Pipeline: {pipeline.name}",
                f"Pipeline ID: {pipeline.id}",
                f"Pipeline URL: {pipeline.url or 'n/a'}",
            ]
            runs = self.client.list_pipeline_runs(pipeline.id)
            if runs:
                latest = runs[0]
                lines += [
                    f"Latest Run ID: {latest.id}",
                    f"State: {latest.state}",
                    f"Result: {latest.result or 'Running'}",
                ]
            else:
                lines.append("No runs yet")
        lines.append("")
        return lines

    def _work_item_section(self) -> list[str]:
        work_item_type = self.settings.work_items.type
        lines = self._heading(f"Work Items ({work_item_type})")
        wiql = (
            "SELECT [System.Id], [System.Title], [System.State] FROM WorkItems "
            f"WHERE [System.WorkItemType] = '{escape_wiql(work_item_type)}' "
            f"AND [System.TeamProject] = '{escape_wiql(self.settings.project)}' "
            "ORDER BY [System.CreatedDate] DESC"
        )
        ids = self.client.query_work_items(wiql)
        if not ids:
            lines.append("No work items found")
        for work_item_id in ids:
            work_item = self.client.get_work_item(work_item_id)
            lines += [
                f"Work Item #{work_item.id}: {work_item.title}",
                f"  State: {work_item.state}",
            ]
            if work_item.description:
                lines.append(f"  Description: {work_item.description}")
            lines.append("")
        return lines


class DashboardBuilder:
    """Creates a dashboard with one widget per work item."""

    WIDGET_CONTRIBUTION_ID = "ms.vss-dashboards-web.Microsoft.VisualStudioOnline.Dashboards.MarkdownWidget"
    WIDGET_COLUMN = 1

    def __init__(self, client: AzureDevOpsClient, settings: Settings) -> None:
        self.client = client
        self.settings = settings

    def build_widgets(self, work_item_ids: list[int]) -> list[Widget]:
        """One widget per id, in order, each on its own row of the first column."""
        return [
            Widget(
                name=f"Work Item #{work_item_id}",
                row=row,
                column=self.WIDGET_COLUMN,
                contribution_id=self.WIDGET_CONTRIBUTION_ID,
                settings=f"[Work Item #{work_item_id}]({self.client.url(f'_workitems/edit/{work_item_id}')})",
            )
            for row, work_item_id in enumerate(work_item_ids, 1)
        ]

    def create_dashboard(self, name: str, work_item_ids: list[int]) -> Dashboard:
        """Create the dashboard and return it."""
        dashboard = self.client.create_dashboard(
            name,
            self.build_widgets(work_item_ids),
            description=f"{len(work_item_ids)} work items created by ado-provisioner",
        )
        logging.info("report: created dashboard '%s' with %d widgets", dashboard.name, len(dashboard.widgets))
        return dashboard
