r"""Command-line interface for Azure DevOps provisioning.

This module provides the command-line interface of the provisioner. It handles
argument parsing, settings and credential loading, dispatch to the provisioning
components, and result printing.

Key Components:
    parse_args: Handles CLI argument parsing and validation
    run: Executes the selected subcommand and prints its result
    main: Entry point for CLI execution, maps errors to exit codes

Subcommands:
    - auth login / logout: Store or remove the personal access token
    - repos create: Ensure a repository exists
    - pipelines create: Ensure a YAML build pipeline exists
    - work-items create: Create one work item, or one per template
    - pull-requests create: Open a pull request
    - provision: Run the full provisioning workflow
    - report: Write a plain-text status report

Output Formats:
    - rich: Colorized output with tables (default)
    - plain: Simple text output suitable for logs
    - json: Structured JSON output for programmatic consumption

Exit Codes:
    0: Success
    1: Provisioning, configuration or authentication error
    2: Network transport error

CLI Usage:
    ```bash
    # Store a PAT in ~/.azdo/secret (prompts when --token is omitted)
    $ adoprov auth login

    # Run the full workflow from appsettings.json and templates.json
    $ adoprov provision --push project --project-root . --report status.txt

    # Create a single work item through the Azure CLI
    $ adoprov work-items create "Add login page" --description "As a user..." --via-az

    # Use verbose output for debugging (level INFO)
    $ adoprov -vv --config settings.yml provision
    ```
"""

import argparse
import logging
import os
import sys

import requests
from rich.prompt import Prompt

from ado_provisioner import __version__
from ado_provisioner.core.azcli import AzureCli
from ado_provisioner.core.client import AzureDevOpsClient
from ado_provisioner.core.config import DEFAULT_SETTINGS_FILE, Settings, UserStoryTemplate, load_settings, load_templates
from ado_provisioner.core.credentials import AuthScheme, CredentialProvider, SecretStore
from ado_provisioner.core.exceptions import (
    ADOProvisionerError,
    AuthenticationError,
    CredentialExistsError,
    WorkItemBatchError,
)
from ado_provisioner.core.models import PushMode
from ado_provisioner.core.pipeline import PipelineProvisioner
from ado_provisioner.core.report import ReportBuilder
from ado_provisioner.core.repository import RepositoryProvisioner
from ado_provisioner.core.work_items import WorkItemBatchCreator
from ado_provisioner.core.workflow import ProvisioningWorkflow

from .printer import PRINTERS

LOG_LEVEL_ENV_VAR = "ADO_PROVISIONER_LOG_LEVEL"


def create_client(settings: Settings, max_retries: int = AzureDevOpsClient.MAX_RETRIES) -> AzureDevOpsClient:
    """Creates an API client from the resolved credential."""
    credential = CredentialProvider(settings).resolve()
    logging.info("cli: using credential from %s", credential.source)
    return AzureDevOpsClient.from_credential(settings, credential, max_retries=max_retries)


def create_azure_cli(settings: Settings) -> AzureCli:
    """Creates an Azure CLI wrapper; Entra tokens are left to the az login session."""
    credential = CredentialProvider(settings).resolve()
    token = credential.token if credential.scheme is AuthScheme.BASIC else None
    return AzureCli(settings, token)


### Subcommand handlers
def auth_login(args: argparse.Namespace) -> dict:
    """Stores a personal access token in the secret store."""
    store = SecretStore()
    if store.exists() and not args.force:
        raise CredentialExistsError(str(store.path))
    token = args.token or Prompt.ask("Personal access token", password=True)
    if not token or not token.strip():
        msg = "No token provided"
        raise AuthenticationError(msg)
    path = store.save(token.strip(), force=args.force)
    return {"stored": str(path)}


def auth_logout(_args: argparse.Namespace) -> dict:
    """Removes the stored personal access token."""
    store = SecretStore()
    return {"removed": store.delete(), "path": str(store.path)}


def repos_create(args: argparse.Namespace) -> object:
    settings = load_settings(args.config)
    if args.via_az:
        return create_azure_cli(settings).create_repository(args.name)
    with create_client(settings, args.max_retries) as client:
        return RepositoryProvisioner(client, settings).ensure_repository(args.name, allow_fallback=False)


def pipelines_create(args: argparse.Namespace) -> object:
    settings = load_settings(args.config)
    yaml_path = args.yaml_path or settings.pipeline.yaml_path
    if args.via_az:
        return create_azure_cli(settings).create_pipeline(args.name, args.repository, yaml_path, args.folder)
    with create_client(settings, args.max_retries) as client:
        repository = client.get_repository(args.repository)
        return PipelineProvisioner(client, settings).ensure_build_pipeline(
            repository,
            name=args.name,
            folder=args.folder,
            yaml_path=yaml_path,
        )


def work_items_create(args: argparse.Namespace) -> object:
    """Creates a single work item from TITLE, or one per entry of the template file."""
    settings = load_settings(args.config)
    if args.title:
        templates = [UserStoryTemplate(title=args.title, description=args.description or "")]
    else:
        templates = load_templates(args.templates or settings.work_items.templates_path)

    if args.via_az:
        az = create_azure_cli(settings)
        return [az.create_work_item(template.title, template.description or None) for template in templates]
    with create_client(settings, args.max_retries) as client:
        return {"work_item_ids": WorkItemBatchCreator(client, settings).create_work_items(templates)}


def pull_requests_create(args: argparse.Namespace) -> object:
    settings = load_settings(args.config)
    work_item_ids = args.work_item or []
    if args.via_az:
        return create_azure_cli(settings).create_pull_request(
            args.repository,
            args.source,
            args.target,
            args.title,
            args.description,
            work_item_ids,
        )
    with create_client(settings, args.max_retries) as client:
        repository = client.get_repository(args.repository)
        return client.create_pull_request(
            repository.name,
            args.source,
            args.target,
            args.title,
            args.description or "",
            work_item_ids,
        )


def provision(args: argparse.Namespace) -> object:
    settings = load_settings(args.config)
    settings.validate_for_provisioning()
    templates = load_templates(settings.work_items.templates_path)
    with create_client(settings, args.max_retries) as client:
        return ProvisioningWorkflow(client, settings).run(
            templates,
            push_mode=PushMode.from_string(args.push),
            project_root=args.project_root,
            dashboard_name=args.dashboard,
            report_path=args.report,
            settings_path=args.config or DEFAULT_SETTINGS_FILE,
        )


def report(args: argparse.Namespace) -> object:
    settings = load_settings(args.config)
    with create_client(settings, args.max_retries) as client:
        return {"report": str(ReportBuilder(client, settings).write(args.output))}


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:  # noqa: PLR0915
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        prog="adoprov",
        description="Provision Azure DevOps repositories, pipelines, work items and pull requests",
    )

    # Configuration
    parser.add_argument(
        "--config",
        default=None,
        help="Settings file, JSON or YAML (default: appsettings.json when present)",
    )

    # Output configuration
    output_group = parser.add_argument_group("output", "Output configuration")
    output_group.add_argument(
        "--output-format",
        choices=list(PRINTERS),
        default="rich",
        help="Output format for results (default: rich)",
    )
    output_group.add_argument("--output-file", default=None, help="Write the result to this file instead of stdout")

    parser.add_argument(
        "--max-retries",
        type=int,
        default=AzureDevOpsClient.MAX_RETRIES,
        help="Retry failed reads up to N times with backoff (default: 0, no retries)",
    )

    # Add verbosity control
    parser.add_argument(
        "--quiet",
        "-q",
        action="store_true",
        help="Suppress all non-essential output",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="count",
        default=0,
        help="Increase verbosity (can be used multiple times)",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"{__version__}",
        help="Show the version of the ado-provisioner",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    # Shared option of the single-resource create commands
    via_az = argparse.ArgumentParser(add_help=False)
    via_az.add_argument(
        "--via-az",
        action="store_true",
        help="Create the resource with the Azure CLI (az devops) instead of the REST API",
    )

    # auth
    auth = subparsers.add_parser("auth", help="Manage the stored personal access token")
    auth_commands = auth.add_subparsers(dest="auth_command", required=True)
    login = auth_commands.add_parser("login", help="Store a personal access token")
    login.add_argument("--token", help="Token to store (prompted for when omitted)")
    login.add_argument("--force", action="store_true", help="Overwrite an existing token")
    login.set_defaults(handler=auth_login)
    logout = auth_commands.add_parser("logout", help="Remove the stored token")
    logout.set_defaults(handler=auth_logout)

    # repos
    repos = subparsers.add_parser("repos", help="Manage repositories")
    repos_commands = repos.add_subparsers(dest="repos_command", required=True)
    repos_new = repos_commands.add_parser("create", parents=[via_az], help="Ensure a repository exists")
    repos_new.add_argument("name", help="Repository name")
    repos_new.set_defaults(handler=repos_create)

    # pipelines
    pipelines = subparsers.add_parser("pipelines", help="Manage build pipelines")
    pipelines_commands = pipelines.add_subparsers(dest="pipelines_command", required=True)
    pipelines_new = pipelines_commands.add_parser("create", parents=[via_az], help="Ensure a YAML pipeline exists")
    pipelines_new.add_argument("name", help="Pipeline name")
    pipelines_new.add_argument("repository", help="Repository holding the YAML definition")
    pipelines_new.add_argument("--yaml-path", default=None, help="YAML definition path (default: from settings)")
    pipelines_new.add_argument("--folder", default=None, help="Pipeline folder")
    pipelines_new.set_defaults(handler=pipelines_create)

    # work-items
    work_items = subparsers.add_parser("work-items", help="Manage work items")
    work_items_commands = work_items.add_subparsers(dest="work_items_command", required=True)
    work_items_new = work_items_commands.add_parser(
        "create",
        parents=[via_az],
        help="Create a work item, or one per template when no title is given",
    )
    work_items_new.add_argument("title", nargs="?", default=None, help="Work item title")
    work_items_new.add_argument("--description", default=None, help="Work item description")
    work_items_new.add_argument("--templates", default=None, help="Template file (default: from settings)")
    work_items_new.set_defaults(handler=work_items_create)

    # pull-requests
    pull_requests = subparsers.add_parser("pull-requests", help="Manage pull requests")
    pull_requests_commands = pull_requests.add_subparsers(dest="pull_requests_command", required=True)
    pull_requests_new = pull_requests_commands.add_parser("create", parents=[via_az], help="Open a pull request")
    pull_requests_new.add_argument("repository", help="Repository name")
    pull_requests_new.add_argument("source", help="Source branch")
    pull_requests_new.add_argument("target", help="Target branch")
    pull_requests_new.add_argument("title", help="Pull request title")
    pull_requests_new.add_argument("--description", default=None, help="Pull request description")
    pull_requests_new.add_argument(
        "--work-item",
        type=int,
        action="append",
        default=None,
        help="Work item id to link (can be used multiple times)",
    )
    pull_requests_new.set_defaults(handler=pull_requests_create)

    # provision
    provision_parser = subparsers.add_parser("provision", help="Run the full provisioning workflow")
    provision_parser.add_argument(
        "--push",
        choices=[str(mode) for mode in PushMode],
        default=str(PushMode.PIPELINE),
        help="What to push to the feature branch (default: pipeline)",
    )
    provision_parser.add_argument("--project-root", default=".", help="Local project directory (default: .)")
    provision_parser.add_argument("--dashboard", default=None, help="Create a dashboard with this name")
    provision_parser.add_argument("--report", default=None, help="Write a status report to this file")
    provision_parser.set_defaults(handler=provision)

    # report
    report_parser = subparsers.add_parser("report", help="Write a plain-text status report")
    report_parser.add_argument("output", help="Report file")
    report_parser.set_defaults(handler=report)

    return parser.parse_args(argv)


def run(args: argparse.Namespace) -> None:
    """Run the selected subcommand and print its result."""
    result = args.handler(args)
    if result is None:
        return
    printer_cls = PRINTERS[args.output_format]
    printer_cls(result).print(output_file=args.output_file)


def configure_logging(args: argparse.Namespace) -> None:
    """Pick the log level from -q / -v or the environment and configure logging."""
    # First check command-line args
    if args.quiet:
        log_level = logging.CRITICAL
    elif args.verbose > 0:
        # Map verbosity count to log levels
        log_level = {
            1: logging.WARNING,
            2: logging.INFO,
            3: logging.DEBUG,
        }.get(min(args.verbose, 3), logging.DEBUG)
    else:
        # Then check environment variable
        env_level = os.environ.get(LOG_LEVEL_ENV_VAR, "CRITICAL").upper()
        log_level = getattr(logging, env_level, logging.CRITICAL)

    logging.basicConfig(level=log_level, format="%(levelname)s: %(message)s")

    # Suppress third-party loggers
    logging.getLogger("azure").setLevel(logging.ERROR)
    logging.getLogger("urllib3").setLevel(logging.ERROR)


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point."""
    args = parse_args(argv)
    configure_logging(args)

    try:
        run(args)
    except WorkItemBatchError as e:
        print(f"error: {e}", file=sys.stderr)
        if e.created_ids:
            created = ", ".join(str(work_item_id) for work_item_id in e.created_ids)
            print(f"created before the failure: {created}", file=sys.stderr)
        return 1
    except ADOProvisionerError as e:
        print(f"error: {e}", file=sys.stderr)
        return 1
    except requests.RequestException as e:
        print(f"error: network failure: {e}", file=sys.stderr)
        return 2
    return 0
