"""Command line interface for Azure DevOps provisioning.

This subpackage provides the command-line interface components of the
provisioner, including argument parsing, printer implementations, and
execution coordination.

Modules:
    commands: CLI argument parsing and execution
    printer: Output formatting and display

Components:
    Command-line Processing:
        parse_args: Command-line arguments parser
        run: Function to execute a subcommand with parsed arguments
        main: CLI entry point function

    Output Formatters:
        ResultPrinter: Abstract base printer class
        PlainPrinter: Simple text output format
        RichPrinter: Rich text console output with tables
        JSONPrinter: Structured JSON output format

Example:
    Using from command-line:
    ```bash
    $ adoprov --config appsettings.json provision --push pipeline
    ```

    Programmatic usage of CLI components:
    ```python
    from ado_provisioner.cli import parse_args, run

    args = parse_args(["report", "status.txt"])
    run(args)
    ```
"""

from ado_provisioner.cli.commands import main, parse_args, run
from ado_provisioner.cli.printer import JSONPrinter, PlainPrinter, ResultPrinter, RichPrinter

__all__ = [  # noqa: RUF022
    # Command-line processing
    "parse_args",
    "run",
    "main",
    # Output formatters
    "JSONPrinter",
    "PlainPrinter",
    "ResultPrinter",
    "RichPrinter",
]
