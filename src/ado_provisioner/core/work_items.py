"""Work item batch creation from templates.

Each template becomes one work item, created through a field-patch document
(an ordered list of ``add`` operations applied atomically by the platform).
Templates are submitted one at a time in file order, and the returned ids are
collected in that same order; the pull request's linked items and the
dashboard layout both follow it.

Creation is fail-fast: the first rejected template stops the batch and raises
WorkItemBatchError, which carries the ids created before the failure.
"""

import logging
from collections.abc import Iterable
from typing import Any

import requests

from .client import AzureDevOpsClient
from .config import Settings, UserStoryTemplate
from .exceptions import ADOProvisionerError, ProvisioningError, WorkItemBatchError

#: Template attribute -> work item field reference name, in patch order.
FIELD_PATHS: dict[str, str] = {
    "title": "System.Title",
    "description": "System.Description",
    "acceptance_criteria": "Microsoft.VSTS.Common.AcceptanceCriteria",
    "story_points": "Microsoft.VSTS.Scheduling.StoryPoints",
    "priority": "Microsoft.VSTS.Common.Priority",
    "tags": "System.Tags",
    "state": "System.State",
}


def build_patch_document(template: UserStoryTemplate) -> list[dict[str, Any]]:
    """Map every template attribute onto an 'add' operation for its field."""
    return [
        {"op": "add", "path": f"/fields/{field}", "value": getattr(template, attribute)}
        for attribute, field in FIELD_PATHS.items()
    ]


class WorkItemBatchCreator:
    """Creates one work item per template and collects the ids in order."""

    def __init__(self, client: AzureDevOpsClient, settings: Settings) -> None:
        self.client = client
        self.settings = settings
        self.created_ids: list[int] = []

    def create_work_items(self, templates: Iterable[UserStoryTemplate], work_item_type: str | None = None) -> list[int]:
        """
        Create the work items, stopping at the first failure.

        Args:
            templates: Templates in the order the items should be created
            work_item_type: Work item type, defaults to the configured one

        Returns:
            The created ids, one per template, in template order

        Raises:
            WorkItemBatchError: On the first failed template (platform, credential
                or transport error); created_ids holds the successes so far
        """
        work_item_type = work_item_type or self.settings.work_items.type
        self.created_ids = []

        for index, template in enumerate(templates, 1):
            step = f"create {work_item_type} #{index} '{template.title}'"
            try:
                work_item = self.client.create_work_item(work_item_type, build_patch_document(template), step=step)
            except (ADOProvisionerError, requests.RequestException) as e:
                logging.error(  # noqa: TRY400
                    "work_items: aborting after %d created: %s",
                    len(self.created_ids),
                    e,
                )
                if isinstance(e, ProvisioningError):
                    raise WorkItemBatchError(step, e.status_code, e.body, self.created_ids) from e
                raise WorkItemBatchError(step, None, str(e), self.created_ids) from e

            self.created_ids.append(work_item.id)
            logging.info("work_items: created work item #%d: %s", work_item.id, template.title)

        return list(self.created_ids)
