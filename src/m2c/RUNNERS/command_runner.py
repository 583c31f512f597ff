# Copyright 2024 Michael Maillet, Damien Davison, Sacha Davison
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""
Execution of backend commands (docker, docker-compose) as blocking system processes.
"""
import logging
import subprocess
from dataclasses import dataclass, field
from typing import List, Optional

logger = logging.getLogger(__name__)


class CommandError(RuntimeError):
    """
    Raised when a command whose output is needed fails or cannot be started.
    """
    def __init__(self, command: List[str], returncode: int, output: str = ""):
        self.command = command
        self.returncode = returncode
        self.output = output
        super().__init__(
            f"Command '{' '.join(command)}' failed with exit code {returncode}: {output.strip()}"
        )


@dataclass
class CommandResult:
    """Outcome of a captured command."""

    command: List[str] = field(default_factory=list)
    returncode: int = 0
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0


class CommandRunner:
    """
    Runs commands in a fixed working directory.
    """
    def __init__(self, working_dir: Optional[str] = None, timeout: Optional[float] = None):
        """
        Initializes the command runner.

        Args:
            working_dir (Optional[str]): Directory commands are started in.
            timeout (Optional[float]): Seconds before a command is abandoned, None to wait forever.
        """
        self.working_dir = working_dir
        self.timeout = timeout

    def run_command(self, *command: str) -> int:
        """
        Runs a command with inherited output.

        Args:
            *command (str): Command and arguments to execute.

        Returns:
            int: The exit status, -1 on timeout. Non-zero statuses are returned, not raised.
        """
        cmd = list(command)
        logger.debug("Running command: %s", " ".join(cmd))
        try:
            completed = subprocess.run(cmd, cwd=self.working_dir, timeout=self.timeout, shell=False)
        except FileNotFoundError as e:
            logger.error("Cannot start '%s': %s", cmd[0], e)
            return 127
        except subprocess.TimeoutExpired as e:
            logger.warning("Command '%s' timed out after %ss", " ".join(cmd), e.timeout)
            return -1
        if completed.returncode != 0:
            logger.debug("Command '%s' exited with %d", " ".join(cmd), completed.returncode)
        return completed.returncode

    def run(self, *command: str) -> CommandResult:
        """
        Runs a command and captures its output without raising on failure.

        Args:
            *command (str): Command and arguments to execute.

        Returns:
            CommandResult: Exit status and captured streams.
        """
        cmd = list(command)
        logger.debug("Running command: %s", " ".join(cmd))
        try:
            completed = subprocess.run(
                cmd,
                cwd=self.working_dir,
                timeout=self.timeout,
                capture_output=True,
                text=True,
                shell=False,
            )
        except FileNotFoundError as e:
            return CommandResult(command=cmd, returncode=127, stderr=str(e))
        except subprocess.TimeoutExpired as e:
            return CommandResult(command=cmd, returncode=-1, stderr=f"Timed out after {e.timeout}s")
        return CommandResult(
            command=cmd,
            returncode=completed.returncode,
            stdout=completed.stdout or "",
            stderr=completed.stderr or "",
        )

    def run_command_and_capture_output(self, *command: str) -> str:
        """
        Runs a command whose output feeds a later step.

        Args:
            *command (str): Command and arguments to execute.

        Returns:
            str: The captured standard output, stripped.

        Raises:
            CommandError: If the command cannot be started or exits non-zero.
        """
        result = self.run(*command)
        if not result.ok:
            raise CommandError(result.command, result.returncode, result.stderr or result.stdout)
        return result.stdout.strip()

    def run_interactive(self, *command: str) -> int:
        """
        Runs a command attached to the current terminal and waits for it.
        An interrupt ends the wait normally.

        Args:
            *command (str): Command and arguments to execute.

        Returns:
            int: The exit status, 0 when interrupted.
        """
        cmd = list(command)
        try:
            process = subprocess.Popen(cmd, cwd=self.working_dir, shell=False)
        except OSError as e:
            raise CommandError(cmd, 127, str(e)) from e
        try:
            return process.wait()
        except KeyboardInterrupt:
            logger.debug("Interactive command '%s' interrupted", " ".join(cmd))
            # The child got the same signal; reap it
            process.wait()
            return 0
