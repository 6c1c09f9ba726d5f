"""This module serves as the entry point for the ado_provisioner application.

It imports the main function from the ado_provisioner.cli module and
executes it when the script is run as the main module.
"""

import sys

from ado_provisioner.cli import main

if __name__ == "__main__":
    sys.exit(main())
