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
Lifecycle of an environment driven through docker-compose.
"""
import json
import logging
import os
import socket
from datetime import datetime, timezone
from typing import Dict, List, Optional, Union

from ..CONVERTERS.to_compose import ComposeFileGenerator
from ..MODELS.container import ContainerInfo
from ..MODELS.runtime_settings import RuntimeSettings
from ..RUNNERS.command_runner import CommandError, CommandRunner
from ..UTILS.naming import network_name, normalize_project_name
from .log_aggregator import LogAggregator, LogListener
from .module_graph import ModuleGraph

logger = logging.getLogger(__name__)

SERVICE_LABEL = "com.docker.compose.service"
SHORT_ID_LENGTH = 12

# ":" is reserved: it separates the fields of the delimited inspect output
INSPECT_DELIMITER = ":"
INSPECT_TEMPLATE = INSPECT_DELIMITER.join([
    "{{.Id}}",
    '{{index .Config.Labels "%s"}}' % SERVICE_LABEL,
    "{{.State.Running}}",
    "{{range .NetworkSettings.Networks}}{{.IPAddress}},{{end}}",
])


class ComposeRuntime:
    """
    Starts, stops and inspects the containers of a module graph with docker-compose.
    """
    def __init__(self,
                 graph: ModuleGraph,
                 settings: Optional[RuntimeSettings] = None,
                 command_runner: Optional[CommandRunner] = None,
                 log_aggregator: Optional[LogAggregator] = None,
                 hostname: Optional[str] = None):
        """
        Initializes the runtime.

        :param graph: The environment to run.
        :param settings: Backend settings, defaults apply when omitted.
        :param command_runner: Runs backend commands in the resources folder.
        :param log_aggregator: Collects container logs.
        :param hostname: Host name used to detect execution inside a container,
            defaults to the local host name.
        """
        self.graph = graph
        self.settings = settings or RuntimeSettings()
        self.runner = command_runner or CommandRunner(graph.resources_folder, self.settings.command_timeout)
        self.log_aggregator = log_aggregator or LogAggregator(docker_command=self.settings.docker_command)
        self.generator = ComposeFileGenerator(self.settings.network_key)
        self._hostname = hostname

    @property
    def descriptor_path(self) -> str:
        return os.path.join(self.graph.resources_folder, self.settings.descriptor_file_name)

    @property
    def project_name(self) -> str:
        return normalize_project_name(self.graph.top_level_module_name)

    @property
    def network_name(self) -> str:
        return network_name(self.graph.top_level_module_name, self.settings.network_key)

    def write_descriptor(self, cached: bool = False) -> str:
        """
        Generates the descriptor from the current modules.

        :param cached: Keep an existing descriptor instead of regenerating it.
        :return: The descriptor path.
        :raises DescriptorWriteError: If the descriptor cannot be written.
        """
        if cached and os.path.isfile(self.descriptor_path):
            logger.debug("Using existing %s", self.descriptor_path)
            return self.descriptor_path
        logger.debug("Building %s for [%s]", self.settings.descriptor_file_name, self.graph.top_level_coordinate)
        return self.generator.write(self.graph.get_modules(), self.descriptor_path)

    def ensure_descriptor_is_present(self) -> str:
        return self.write_descriptor(cached=True)

    def start(self, service: Optional[str] = None) -> int:
        """
        Regenerates the descriptor and starts all services, or one of them, detached.

        :param service: Service to start, all when omitted.
        :return: Exit status of `up`.
        """
        logger.debug("Forcing update of %s before start", self.settings.descriptor_file_name)
        self.write_descriptor()
        since = datetime.now(timezone.utc)
        status = self.runner.run_command(*self._compose("up", "-d", *self._optional(service)))
        self.ensure_network_communication_is_possible()
        if service is None:
            containers = self.get_containers()
        else:
            containers = [self.get_container(service)]
        self.log_aggregator.ensure_capturing_logs(since, containers)
        return status

    def stop(self, service: Optional[str] = None) -> int:
        """
        Stops all services, or one of them. Stopping everything also removes the
        environment network so that repeated cycles do not exhaust host networks.

        :param service: Service to stop, all when omitted.
        :return: Exit status of `stop`.
        """
        self.ensure_descriptor_is_present()
        status = self.runner.run_command(*self._compose("stop", *self._optional(service)))
        if service is None:
            result = self.runner.run(self.settings.docker_command, "network", "rm", self.network_name)
            # Already removed or still in use; it is recreated on the next start
            if not result.ok:
                logger.debug("Network %s not removed: %s", self.network_name, result.stderr.strip())
        return status

    def status(self) -> int:
        self.ensure_descriptor_is_present()
        return self.runner.run_command(*self._compose("ps"))

    def clean(self, service: Optional[str] = None) -> int:
        """
        Removes stopped containers of all services, or of one of them.
        """
        self.ensure_descriptor_is_present()
        return self.runner.run_command(*self._compose("rm", "-f", *self._optional(service)))

    def pull(self, service: Optional[str] = None) -> int:
        """
        Pulls the images of all services, or of one of them.
        """
        self.ensure_descriptor_is_present()
        return self.runner.run_command(*self._compose("pull", *self._optional(service)))

    def shell(self, container: Union[ContainerInfo, str]) -> int:
        """
        Opens an interactive shell in a container and waits until it exits.
        An interrupt ends the session normally.

        :param container: The container, or the name of its service.
        :return: Exit status of the shell.
        :raises ValueError: If no container runs the given service.
        """
        self.ensure_descriptor_is_present()
        if isinstance(container, str):
            found = self.get_container(container)
            if found is None:
                raise ValueError(f"No container found for service {container}")
            container = found
        return self.runner.run_interactive(
            self.settings.docker_command, "exec", "-it", container.id, *self.settings.shell_command
        )

    def get_containers(self) -> List[ContainerInfo]:
        """
        Lists the containers of the environment, sorted by service name.

        :return: The containers, empty when none exist.
        :raises CommandError: If the backend fails or its output cannot be parsed.
        """
        self.ensure_descriptor_is_present()
        ids = self.runner.run_command_and_capture_output(*self._compose("ps", "-q")).split()
        logger.debug("docker-compose ps output: %s", ids)
        if not ids:
            return []
        if self.settings.inspect_mode == "json":
            command = [self.settings.docker_command, "inspect", *ids]
            containers = _parse_inspect_json(command, self.runner.run_command_and_capture_output(*command))
        else:
            command = [self.settings.docker_command, "inspect", "-f", INSPECT_TEMPLATE, *ids]
            containers = _parse_inspect_delimited(command, self.runner.run_command_and_capture_output(*command))
        return sorted(containers, key=lambda c: c.service_name)

    def get_container(self, service_name: str) -> Optional[ContainerInfo]:
        """
        Returns the container of a service, or None if there is none.
        """
        for container in self.get_containers():
            if container.service_name == service_name:
                return container
        return None

    def is_running(self) -> bool:
        return any(c.running for c in self.get_containers())

    def get_addresses(self) -> Dict[str, str]:
        """
        Get IP addresses of running containers by service name.
        """
        return {
            c.service_name: c.ip_address
            for c in self.get_containers()
            if c.running and c.ip_address
        }

    def register_log_listener(self, listener: LogListener):
        """
        Registers a log listener for the containers of the environment. Does not block.
        """
        self.ensure_descriptor_is_present()
        self.log_aggregator.register_log_listener(listener, self.get_containers())

    def ensure_network_communication_is_possible(self) -> bool:
        """
        Attaches the container this process runs in, if any, to the environment network.
        A process running inside a container is usually not part of the environment
        and cannot reach the services otherwise.

        :return: True if a container was attached.
        """
        own_container = self._find_own_container()
        if not own_container:
            return False

        logger.debug("Execution from inside a container detected, configuring container networking")
        target = own_container
        mode = self.runner.run(
            self.settings.docker_command, "inspect", "-f", "{{.HostConfig.NetworkMode}}", own_container
        )
        network_mode = mode.stdout.strip() if mode.ok else ""
        if network_mode.startswith("container:"):
            target = network_mode[len("container:"):]
            logger.debug("Detected a shared container network stack")

        logger.debug("Attaching container [%s] to network [%s]", target, self.network_name)
        result = self.runner.run(self.settings.docker_command, "network", "connect", self.network_name, target)
        if not result.ok:
            logger.warning("Could not attach %s to %s: %s", target, self.network_name, result.stderr.strip())
        return result.ok

    def _find_own_container(self) -> Optional[str]:
        hostname = self._hostname or socket.gethostname()
        # Docker names a container's host after its short id
        if len(hostname) < SHORT_ID_LENGTH:
            return None
        result = self.runner.run(
            self.settings.docker_command, "ps", "--no-trunc", "--format", "{{.ID}} {{.Names}}"
        )
        if not result.ok:
            return None
        for line in result.stdout.splitlines():
            fields = line.split()
            if not fields or not fields[0].startswith(hostname):
                continue
            if len(fields) > 1 and "k8s_POD" in fields[1]:
                continue
            return fields[0]
        return None

    def _compose(self, *args: str) -> List[str]:
        return [
            *self.settings.compose_command,
            "-f", self.descriptor_path,
            "-p", self.project_name,
            *args,
        ]

    @staticmethod
    def _optional(service: Optional[str]) -> List[str]:
        return [service] if service else []


def _parse_inspect_json(command: List[str], output: str) -> List[ContainerInfo]:
    try:
        entries = json.loads(output)
        containers = []
        for entry in entries:
            networks = (entry.get("NetworkSettings") or {}).get("Networks") or {}
            first_network = next(iter(networks.values()), None) or {}
            containers.append(ContainerInfo(
                id=entry["Id"],
                service_name=((entry.get("Config") or {}).get("Labels") or {}).get(SERVICE_LABEL, ""),
                running=bool((entry.get("State") or {}).get("Running")),
                ip_address=first_network.get("IPAddress") or None,
            ))
        return containers
    except (ValueError, KeyError, TypeError, AttributeError) as e:
        raise CommandError(command, 0, f"Malformed inspect output: {e}") from e


def _parse_inspect_delimited(command: List[str], output: str) -> List[ContainerInfo]:
    containers = []
    for line in output.splitlines():
        if not line.strip():
            continue
        parts = line.split(INSPECT_DELIMITER)
        if len(parts) < 3:
            raise CommandError(command, 0, f"Malformed inspect output: {line}")
        addresses = parts[3].split(",") if len(parts) > 3 else []
        containers.append(ContainerInfo(
            id=parts[0],
            service_name=parts[1],
            running=parts[2] == "true",
            ip_address=addresses[0] if addresses and addresses[0] else None,
        ))
    return containers
