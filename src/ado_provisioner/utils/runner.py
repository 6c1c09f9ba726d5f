"""External command runner with timeout handling."""

import logging
import os
import subprocess
from collections.abc import Mapping, Sequence
from dataclasses import dataclass

DEFAULT_TIMEOUT = 300  # Seconds, az devops calls can be slow on first use


@dataclass
class CommandResult:
    """Result of an external command."""

    exit_code: int
    stdout: str
    stderr: str
    timed_out: bool = False

    @property
    def success(self) -> bool:
        return self.exit_code == 0 and not self.timed_out


class CommandRunner:
    """Runs external commands, capturing their output as text."""

    def __init__(self, timeout: float = DEFAULT_TIMEOUT) -> None:
        self.timeout = timeout

    def run(self, arguments: Sequence[str], environment: Mapping[str, str] | None = None) -> CommandResult:
        """
        Run a command and wait for it to finish.

        Args:
            arguments: Program and its arguments, passed without a shell
            environment: Variables added on top of the current process environment

        Returns:
            CommandResult with exit code, stdout, stderr and the timed_out flag;
            a missing program is reported as exit code 127
        """
        env = {**os.environ, **(environment or {})}
        logging.debug("runner: running %s", arguments[0] if arguments else "<empty>")
        try:
            result = subprocess.run(  # noqa: S603
                list(arguments),
                capture_output=True,
                text=True,
                timeout=self.timeout,
                env=env,
                check=False,
            )
        except subprocess.TimeoutExpired:
            return CommandResult(
                exit_code=-1,
                stdout="",
                stderr=f"Command timed out after {self.timeout}s",
                timed_out=True,
            )
        except FileNotFoundError as e:
            return CommandResult(exit_code=127, stdout="", stderr=str(e))
        return CommandResult(exit_code=result.returncode, stdout=result.stdout, stderr=result.stderr)
