"""
Configuration of the docker-compose runtime.
"""
import os
import shlex
from typing import Dict, List, Literal, Optional
from pydantic import BaseModel


class RuntimeSettings(BaseModel):
    """
    Settings controlling how the orchestration backend is invoked.
    """
    compose_command: List[str] = ["docker-compose"]
    docker_command: str = "docker"
    descriptor_file_name: str = "docker-compose.yml"
    network_key: str = "m2c"
    shell_command: List[str] = ["/bin/bash"]

    # Seconds; None blocks until the backend returns
    command_timeout: Optional[float] = None

    # "delimited" keeps the legacy colon separated inspect template
    inspect_mode: Literal["json", "delimited"] = "json"

    @classmethod
    def from_env(cls, environ: Optional[Dict[str, str]] = None) -> "RuntimeSettings":
        """
        Builds settings from M2C_* environment variables.

        :param environ: Environment to read, defaults to os.environ.
        :return: The settings, with defaults for unset variables.
        """
        environ = os.environ if environ is None else environ
        values = {}
        if environ.get("M2C_COMPOSE_COMMAND"):
            values["compose_command"] = shlex.split(environ["M2C_COMPOSE_COMMAND"])
        if environ.get("M2C_SHELL_COMMAND"):
            values["shell_command"] = shlex.split(environ["M2C_SHELL_COMMAND"])
        for key in ("docker_command", "descriptor_file_name", "network_key", "inspect_mode"):
            env_key = f"M2C_{key.upper()}"
            if environ.get(env_key):
                values[key] = environ[env_key]
        if environ.get("M2C_COMMAND_TIMEOUT"):
            values["command_timeout"] = float(environ["M2C_COMMAND_TIMEOUT"])
        return cls(**values)
