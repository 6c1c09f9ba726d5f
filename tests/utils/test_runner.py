import subprocess
from unittest.mock import patch

import pytest

from ado_provisioner.utils.runner import CommandResult, CommandRunner


def test_run_success() -> None:
    """Test that output and exit code are captured."""
    completed = subprocess.CompletedProcess(args=["az"], returncode=0, stdout="{}", stderr="")
    with patch("ado_provisioner.utils.runner.subprocess.run", return_value=completed) as mock_run:
        result = CommandRunner(timeout=5).run(["az", "version"], {"AZURE_DEVOPS_EXT_PAT": "pat"})

    if result != CommandResult(exit_code=0, stdout="{}", stderr=""):
        pytest.fail(f"Unexpected result {result}")
    kwargs = mock_run.call_args.kwargs
    if kwargs["timeout"] != 5 or kwargs["env"].get("AZURE_DEVOPS_EXT_PAT") != "pat":
        pytest.fail(f"Unexpected subprocess arguments {kwargs}")
    if mock_run.call_args.args[0] != ["az", "version"]:
        pytest.fail("Expected the arguments to be passed without a shell")


def test_run_failure() -> None:
    """Test a non-zero exit code."""
    completed = subprocess.CompletedProcess(args=["az"], returncode=2, stdout="", stderr="bad arguments")
    with patch("ado_provisioner.utils.runner.subprocess.run", return_value=completed):
        result = CommandRunner().run(["az", "nope"])
    if result.success or result.exit_code != 2 or result.stderr != "bad arguments":  # noqa: PLR2004
        pytest.fail(f"Unexpected result {result}")


def test_run_timeout() -> None:
    """Test that a timeout is reported rather than raised."""
    with patch("ado_provisioner.utils.runner.subprocess.run", side_effect=subprocess.TimeoutExpired(cmd="az", timeout=1)):
        result = CommandRunner(timeout=1).run(["az", "devops"])
    if not result.timed_out or result.success:
        pytest.fail(f"Unexpected result {result}")


def test_missing_program() -> None:
    """Test that a missing program is reported with exit code 127."""
    result = CommandRunner().run(["definitely-not-an-installed-program-azdo"])
    if result.exit_code != 127 or result.success:  # noqa: PLR2004
        pytest.fail(f"Unexpected result {result}")
