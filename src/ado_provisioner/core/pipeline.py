"""Build pipeline provisioning.

A pipeline is considered already provisioned when any existing pipeline's name
contains the configured name (``match: substring``, the default) or equals it
(``match: exact``). The substring rule also matches e.g. 'app-CI-nightly' for
'app-CI'; pick exact matching when pipeline names share prefixes.
"""

import logging

from .client import AzureDevOpsClient
from .config import Settings
from .exceptions import ConfigurationError, ProvisioningError
from .models import Pipeline, Repository


class PipelineProvisioner:
    """Ensures a YAML build pipeline exists, idempotent by name."""

    def __init__(self, client: AzureDevOpsClient, settings: Settings) -> None:
        self.client = client
        self.settings = settings

    def find_existing(self, pipelines: list[Pipeline], name: str) -> Pipeline | None:
        """Return the pipeline that counts as already provisioned, if any."""
        if self.settings.pipeline.match == "exact":
            return next((p for p in pipelines if p.name == name), None)
        return next((p for p in pipelines if name in p.name), None)

    def ensure_build_pipeline(
        self,
        repository: Repository,
        name: str | None = None,
        folder: str | None = None,
        yaml_path: str | None = None,
    ) -> Pipeline | None:
        """
        Create the pipeline unless a matching one exists.

        Args:
            repository: Repository holding the YAML definition
            name: Pipeline name, defaults to the configured one
            folder: Pipeline folder, defaults to the configured one
            yaml_path: YAML definition path, defaults to the configured one

        Returns:
            The existing or created pipeline; None when creation failed and
            fail_on_error is disabled

        Raises:
            ProvisioningError: When creation is rejected and fail_on_error is set
        """
        config = self.settings.pipeline
        name = name or config.name
        if not name:
            msg = "Missing required setting: Pipeline.Name"
            raise ConfigurationError(msg)
        folder = folder if folder is not None else config.folder
        yaml_path = yaml_path or config.yaml_path

        existing = self.find_existing(self.client.list_pipelines(), name)
        if existing is not None:
            logging.info("pipeline: '%s' already exists as '%s' (id %s)", name, existing.name, existing.id)
            return existing

        try:
            created = self.client.create_pipeline(name, repository, yaml_path, folder)
        except ProvisioningError:
            if config.fail_on_error:
                raise
            logging.exception("pipeline: failed to create '%s', continuing", name)
            return None

        logging.info("pipeline: created '%s' (id %s) for %s:%s", created.name, created.id, repository.name, yaml_path)
        return created
