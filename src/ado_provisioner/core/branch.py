"""Feature branch management and content pushes.

The feature branch is disposable automation scaffolding: on every run it is
either created from the main branch tip or reset to it. Resetting is not a
merge, commits that only exist on the feature branch are dropped.

All ref writes are optimistic. Each one states the commit id the caller last
saw as ``oldObjectId`` and the platform rejects it if the ref has moved since.
A rejected write surfaces as ConflictError so callers can re-read the tip and
try again; nothing here retries on its own.

Example:
    ```python
    branches = BranchManager(client, settings)
    branches.ensure_feature_branch(repository)
    branches.push_content(
        repository,
        settings.repository.feature_branch,
        [("azure-pipelines.yml", yaml_text)],
    )
    ```
"""

import logging
from collections.abc import Iterable
from concurrent.futures import ThreadPoolExecutor

from .client import AzureDevOpsClient
from .config import Settings
from .exceptions import BranchNotFoundError, ConflictError, ProvisioningError
from .models import ZERO_OBJECT_ID, ChangeType, FileChange, GitRef, RefUpdate, Repository


class BranchManager:
    """Creates or resets the feature branch and pushes files to it."""

    MAX_PROBE_WORKERS = 4  # Bounded pool for per-file existence probes
    TREE_COMMIT_COMMENT = "Update project files and pipeline configuration"

    def __init__(
        self,
        client: AzureDevOpsClient,
        settings: Settings,
        max_workers: int = MAX_PROBE_WORKERS,
    ) -> None:
        self.client = client
        self.settings = settings
        self.max_workers = max(1, max_workers)

    def get_tip(self, repository: Repository, branch: str) -> GitRef:
        """Return the current ref of a branch that must exist."""
        ref = self.client.get_ref(repository.name, branch)
        if ref is None:
            raise BranchNotFoundError(repository.name, branch)
        return ref

    def ensure_feature_branch(self, repository: Repository) -> GitRef:
        """
        Create the feature branch from main, or reset it to main.

        Returns:
            The feature branch ref after the update

        Raises:
            BranchNotFoundError: When the main branch does not exist
            ConflictError: When the feature branch moved while being reset
            ProvisioningError: When the platform rejects the ref update
        """
        main_branch = self.settings.repository.main_branch
        feature_branch = self.settings.repository.feature_branch

        main = self.get_tip(repository, main_branch)
        feature = self.client.get_ref(repository.name, feature_branch)

        if feature is None:
            update = RefUpdate(
                name=GitRef.ref_name(feature_branch),
                old_object_id=ZERO_OBJECT_ID,
                new_object_id=main.object_id,
            )
            self._apply(repository, update, step=f"create branch '{feature_branch}'")
            logging.info("branch: created '%s' from '%s' at %s", feature_branch, main_branch, main.object_id)
        elif feature.object_id != main.object_id:
            update = RefUpdate(
                name=feature.name,
                old_object_id=feature.object_id,
                new_object_id=main.object_id,
            )
            self._apply(repository, update, step=f"reset branch '{feature_branch}'")
            logging.info(
                "branch: reset '%s' from %s to '%s' at %s",
                feature_branch,
                feature.object_id,
                main_branch,
                main.object_id,
            )
        else:
            logging.info("branch: '%s' already matches '%s' at %s", feature_branch, main_branch, main.object_id)

        return GitRef(name=GitRef.ref_name(feature_branch), object_id=main.object_id)

    def _apply(self, repository: Repository, update: RefUpdate, step: str) -> None:
        """Send one ref update and turn an unsuccessful verdict into an error."""
        results = self.client.update_refs(repository.name, [update], step=step)
        for result in results:
            if result.success:
                continue
            if result.is_stale:
                raise ConflictError(step, body=f"{result.name}: {result.update_status}")
            raise ProvisioningError(step, body=f"{result.name}: {result.update_status}")

    def classify(self, repository: Repository, branch: str, files: list[tuple[str, str]]) -> list[FileChange]:
        """
        Decide add or edit for each file by probing whether it already exists.

        Probes run on a bounded thread pool; the returned changes keep the
        order of files regardless of which probe finishes first.
        """

        def probe(path: str) -> bool:
            return self.client.item_exists(repository.name, path, branch)

        paths = [path for path, _ in files]
        if self.max_workers == 1 or len(paths) <= 1:
            existing = [probe(path) for path in paths]
        else:
            with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
                existing = list(executor.map(probe, paths))

        return [
            FileChange(path=path, content=content, change_type=ChangeType.EDIT if found else ChangeType.ADD)
            for (path, content), found in zip(files, existing, strict=True)
        ]

    def push_content(
        self,
        repository: Repository,
        branch: str,
        files: Iterable[tuple[str, str]],
        comment: str | None = None,
    ) -> dict | None:
        """
        Push files as a single commit on top of the branch's current tip.

        Args:
            repository: Target repository
            branch: Branch to push to; it must exist
            files: (path, content) pairs, paths relative to the repository root
            comment: Commit message, defaults to a generic project update message

        Returns:
            The push response, or None when there was nothing to push

        Raises:
            BranchNotFoundError: When the branch does not exist
            ConflictError: When the branch moved after its tip was read
            ProvisioningError: When the platform rejects the push
        """
        files = list(files)
        if not files:
            logging.warning("branch: no files to push to '%s'", branch)
            return None

        tip = self.get_tip(repository, branch)
        changes = self.classify(repository, branch, files)
        result = self.client.create_push(
            repository.name,
            branch,
            tip.object_id,
            comment or self.TREE_COMMIT_COMMENT,
            changes,
        )
        added = sum(1 for change in changes if change.change_type is ChangeType.ADD)
        logging.info(
            "branch: pushed %d files to '%s' (%d added, %d edited)",
            len(changes),
            branch,
            added,
            len(changes) - added,
        )
        return result

    def push_file(self, repository: Repository, branch: str, path: str, content: str) -> dict | None:
        """Push a single file with an 'Add <path>' or 'Update <path>' commit message."""
        tip = self.get_tip(repository, branch)
        (change,) = self.classify(repository, branch, [(path, content)])
        verb = "Add" if change.change_type is ChangeType.ADD else "Update"
        result = self.client.create_push(
            repository.name,
            branch,
            tip.object_id,
            f"{verb} {path.lstrip('/')}",
            [change],
        )
        logging.info("branch: pushed %s to '%s' (%s)", path, branch, change.change_type)
        return result
