"""Repository provisioning.

Ensures the configured git repository exists in the project:

    - Repositories exist and one matches the configured name
      (case-insensitive): that repository is used, wherever it is listed.
    - Repositories exist but none matches: with allow_fallback (the default)
      the first listed repository is used and a warning is logged. This
      silently targets a different repository, so it can be switched off, in
      which case the configured repository is created instead.
    - No repositories: the configured repository is created.
"""

import logging

from .client import AzureDevOpsClient
from .config import Settings
from .models import Repository


class RepositoryProvisioner:
    """Ensures a named source repository exists."""

    def __init__(self, client: AzureDevOpsClient, settings: Settings) -> None:
        self.client = client
        self.settings = settings

    def ensure_repository(self, name: str | None = None, *, allow_fallback: bool | None = None) -> Repository:
        """
        Find or create the repository.

        Args:
            name: Repository name, defaults to the configured one
            allow_fallback: Override the configured fallback behaviour

        Returns:
            The matched, fallen-back-to or created repository

        Raises:
            ProvisioningError: When creation is rejected by the platform
        """
        name = name or self.settings.repository_name
        if allow_fallback is None:
            allow_fallback = self.settings.repository.allow_fallback

        repositories = self.client.list_repositories()
        if repositories:
            match = self.find_by_name(repositories, name)
            if match is not None:
                logging.info("repository: using existing repository '%s'", match.name)
                return match
            if allow_fallback:
                fallback = repositories[0]
                logging.warning(
                    "repository: no repository named '%s', falling back to first listed repository '%s'",
                    name,
                    fallback.name,
                )
                return fallback
            logging.info("repository: no repository named '%s' among %d, creating it", name, len(repositories))
        else:
            logging.info("repository: no repositories found, creating '%s'", name)

        created = self.client.create_repository(name)
        logging.info("repository: created repository '%s' (%s)", created.name, created.id)
        return created

    @staticmethod
    def find_by_name(repositories: list[Repository], name: str) -> Repository | None:
        """Return the first repository whose name matches case-insensitively."""
        wanted = name.casefold()
        return next((repo for repo in repositories if repo.name.casefold() == wanted), None)
