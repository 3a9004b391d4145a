"""External command execution for trust store drivers."""

import logging
import os
import shutil
import subprocess
from typing import Mapping, NamedTuple, Optional, Sequence

from fastcert.errors import CommandFailedError

logger = logging.getLogger("fastcert")


class CommandResult(NamedTuple):
    """Outcome of one finished child process."""

    returncode: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    @property
    def output(self) -> str:
        """stdout and stderr together, for signature matching."""
        return f"{self.stdout}\n{self.stderr}"


class CommandRunner:
    """Runs platform trust utilities as blocking child processes."""

    def __init__(self, sudo_path: str = "sudo"):
        self.sudo_path = sudo_path

    @staticmethod
    def needs_sudo() -> bool:
        """Whether elevation must be requested explicitly."""
        return os.name == "posix" and os.geteuid() != 0

    @staticmethod
    def which(name: str) -> Optional[str]:
        """Locate an executable on PATH."""
        return shutil.which(name)

    def run(
        self,
        args: Sequence[str],
        elevated: bool = False,
        input: Optional[str] = None,
        env: Optional[Mapping[str, str]] = None,
    ) -> CommandResult:
        """
        Run a command and capture its output.

        Args:
            args: Program and arguments
            elevated: Run through sudo (POSIX, non-root only)
            input: Text fed to standard input
            env: Extra environment variables

        Returns:
            Command result, whatever the exit status

        Raises:
            CommandFailedError: If the program could not be started
        """
        argv = [str(arg) for arg in args]
        if elevated and self.needs_sudo():
            prefix = [self.sudo_path]
            if env:
                prefix.append(f"--preserve-env={','.join(env)}")
            argv = prefix + ["--"] + argv

        child_env = None
        if env:
            child_env = os.environ.copy()
            child_env.update(env)

        logger.debug(f"Executing: {' '.join(argv)}")
        try:
            result = subprocess.run(
                argv,
                shell=False,
                input=input,
                capture_output=True,
                text=True,
                env=child_env,
            )
        except OSError as e:
            raise CommandFailedError(f"Failed to execute {argv[0]}: {e}") from e

        if result.returncode != 0:
            logger.debug(f"Command exited with {result.returncode}: {result.stderr.strip()}")
        return CommandResult(result.returncode, result.stdout, result.stderr)


def run_with_elevated_retry(
    runner: CommandRunner,
    args: Sequence[str],
    signature: str,
    env: Optional[Mapping[str, str]] = None,
) -> CommandResult:
    """
    Run a command and retry it once elevated if it fails with ``signature``.

    The retry only happens on POSIX systems; elsewhere the first result is
    returned as is.

    Args:
        runner: Command runner
        args: Program and arguments
        signature: Text whose presence in the output triggers the retry
        env: Extra environment variables for both attempts

    Returns:
        Result of the last attempt
    """
    result = runner.run(args, env=env)
    if not result.ok and os.name == "posix" and signature in result.output:
        logger.debug(f"Retrying {args[0]} with elevated privileges ({signature})")
        result = runner.run(args, elevated=True, env=env)
    return result

