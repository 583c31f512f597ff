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
Converter generating docker-compose descriptors from resolved modules.
"""
import logging
import os
from typing import List

import yaml

from ..MODELS.compose_descriptor import ComposeDescriptor, ComposeNetwork, ComposeService, ServiceNetwork
from ..MODELS.module import Module

logger = logging.getLogger(__name__)

NETWORK_ALIASES_PROPERTY = "network.aliases"


class DescriptorWriteError(RuntimeError):
    """
    Raised when the descriptor cannot be written to disk.
    """


class ComposeFileGenerator:
    """
    Converts a module list into a docker-compose.yml descriptor.
    The descriptor is always rebuilt from scratch.
    """

    def __init__(self, network_key: str = "m2c"):
        """
        Initializes the generator.

        :param network_key: Key of the single network every service joins.
        """
        self.network_key = network_key

    def build(self, modules: List[Module]) -> ComposeDescriptor:
        """
        Builds the descriptor model. Modules without an image only contribute
        configuration and get no service.

        :param modules: Modules in dependency order.
        :return: The descriptor.
        """
        services = {}
        for module in modules:
            if not module.image_name:
                logger.debug("Module [%s] has no docker image", module.name)
                continue
            services[module.name] = ComposeService(
                image=module.image_name,
                volumes=sorted(module.volumes) or None,
                entrypoint=module.entrypoint,
                env_file=sorted(module.env_files) if module.env_files else None,
                networks={self.network_key: ServiceNetwork(aliases=network_aliases(module))},
            )
        return ComposeDescriptor(
            services=services,
            networks={self.network_key: ComposeNetwork(driver="bridge")},
        )

    def generate(self, modules: List[Module]) -> str:
        """
        Renders the descriptor as YAML text accepted by docker-compose.

        :param modules: Modules in dependency order.
        :return: The descriptor content.
        """
        data = self.build(modules).model_dump(exclude_none=True)
        return yaml.safe_dump(data, sort_keys=False, default_flow_style=False)

    def write(self, modules: List[Module], path: str) -> str:
        """
        Writes the descriptor, replacing any existing file.

        :param modules: Modules in dependency order.
        :param path: Destination file.
        :return: The path written.
        :raises DescriptorWriteError: If the file cannot be written.
        """
        content = self.generate(modules)
        try:
            os.makedirs(os.path.dirname(os.path.abspath(path)), exist_ok=True)
            with open(path, "w") as f:
                f.write(content)
        except OSError as e:
            raise DescriptorWriteError(f"Failed to write {path}") from e
        logger.debug("Descriptor written to %s", path)
        return path


def network_aliases(module: Module) -> List[str]:
    """
    DNS aliases of a module in the environment network: `<short image>.docker`,
    `<container>.<short image>.docker` and the comma separated `network.aliases` property.
    """
    aliases = set()
    declared = module.properties.get(NETWORK_ALIASES_PROPERTY)
    if declared:
        aliases.update(alias.strip() for alias in declared.split(","))
        aliases.discard("")
    short_image_name = module.short_image_name
    aliases.add(f"{short_image_name}.docker")
    if module.container_name:
        aliases.add(f"{module.container_name}.{short_image_name}.docker")
    return sorted(aliases)
