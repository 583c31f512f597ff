"""
Shared fixtures: module factories and a scripted command runner.
"""
from typing import Dict, List, Tuple

import pytest

from m2c.MODELS.module import Module, ModuleCoordinate
from m2c.RUNNERS.command_runner import CommandResult, CommandRunner


class FakeCommandRunner(CommandRunner):
    """
    Records commands and answers them from scripted results.
    A script key matches when it appears as a contiguous slice of the command.
    """

    def __init__(self):
        super().__init__()
        self.calls: List[List[str]] = []
        self.interactive_calls: List[List[str]] = []
        self.script: Dict[Tuple[str, ...], CommandResult] = {}

    def respond(self, key: Tuple[str, ...], stdout: str = "", returncode: int = 0, stderr: str = ""):
        self.script[tuple(key)] = CommandResult(list(key), returncode, stdout, stderr)

    def _lookup(self, command: List[str]) -> CommandResult:
        for key in sorted(self.script, key=len, reverse=True):
            n = len(key)
            if any(tuple(command[i:i + n]) == key for i in range(len(command) - n + 1)):
                result = self.script[key]
                return CommandResult(command, result.returncode, result.stdout, result.stderr)
        return CommandResult(command, 0, "", "")

    def run_command(self, *command: str) -> int:
        self.calls.append(list(command))
        return self._lookup(list(command)).returncode

    def run(self, *command: str) -> CommandResult:
        self.calls.append(list(command))
        return self._lookup(list(command))

    def run_interactive(self, *command: str) -> int:
        self.interactive_calls.append(list(command))
        return self._lookup(list(command)).returncode

    def called(self, *fragment: str) -> bool:
        n = len(fragment)
        return any(
            tuple(call[i:i + n]) == fragment
            for call in self.calls
            for i in range(len(call) - n + 1)
        )


@pytest.fixture
def fake_runner():
    return FakeCommandRunner()


@pytest.fixture
def make_module():
    def factory(name, image=None, **fields):
        return Module(
            coordinate=ModuleCoordinate(group="com.example", name=name, version="1.0"),
            name=name,
            image_name=image,
            **fields,
        )
    return factory
