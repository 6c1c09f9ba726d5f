"""Pull request creation linking the created work items."""

import logging

from .client import AzureDevOpsClient
from .config import Settings
from .exceptions import ConfigurationError
from .models import PullRequest, Repository


def format_description(template: str, count: int) -> str:
    """Interpolate the linked item count; both '{0}' and '{count}' are accepted."""
    try:
        return template.format(count, count=count)
    except (IndexError, KeyError, ValueError) as e:
        msg = f"Invalid PullRequest.DescriptionTemplate '{template}': {e}"
        raise ConfigurationError(msg) from e


class PullRequestOpener:
    """Opens a pull request from the feature branch into the main branch."""

    def __init__(self, client: AzureDevOpsClient, settings: Settings) -> None:
        self.client = client
        self.settings = settings

    def open_pull_request(
        self,
        repository: Repository,
        work_item_ids: list[int],
        source: str | None = None,
        target: str | None = None,
        title: str | None = None,
        description_template: str | None = None,
    ) -> PullRequest | None:
        """
        Open the pull request, or skip it when there is nothing to link.

        Returns:
            The created pull request, or None when skipped (no work item ids,
            no network call made)

        Raises:
            ProvisioningError: When the platform rejects the pull request
        """
        if not work_item_ids:
            logging.info("pull_request: skipped, no work items were created")
            return None

        source = source or self.settings.repository.feature_branch
        target = target or self.settings.repository.main_branch
        title = title or self.settings.pull_request.title
        template = description_template if description_template is not None else self.settings.pull_request.description_template

        pull_request = self.client.create_pull_request(
            repository.name,
            source,
            target,
            title,
            format_description(template, len(work_item_ids)),
            list(work_item_ids),
        )
        logging.info(
            "pull_request: created pull request #%d with %d linked work items",
            pull_request.pull_request_id,
            len(work_item_ids),
        )
        return pull_request
