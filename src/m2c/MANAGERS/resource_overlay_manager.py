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
Materialization of module resource bundles under a working directory.
"""
import logging
import os
from typing import Callable, List, Optional

from ..MODELS.module import Module
from ..UTILS.file_sync import sync_tree

logger = logging.getLogger(__name__)

CopyResources = Callable[[Module, str], None]


class ResourceOverlayManager:
    """
    Lays out one resources directory per module under a common root.

    A bundle may hold subtrees named after other modules, each with `files/`
    and `env/` children; this is how a module contributes configuration to
    another one. Copies are additive and only a single writer per root is supported.
    """
    def __init__(self,
                 resources_root: str,
                 top_level_module_name: Optional[str] = None,
                 top_level_resources_path: Optional[str] = None):
        """
        Initializes the overlay manager.

        :param resources_root: Directory holding one subdirectory per module.
        :param top_level_module_name: Name of the module the environment is built for.
        :param top_level_resources_path: Live source directory used for the top-level
            module instead of its packaged bundle.
        """
        self.resources_root = os.path.abspath(resources_root)
        self.top_level_module_name = top_level_module_name
        self.top_level_resources_path = (
            os.path.abspath(top_level_resources_path) if top_level_resources_path else None
        )

    def resolve_resources(self, modules: List[Module], copy_resources: CopyResources) -> None:
        """
        Ensures every module's resources directory exists and is populated.

        :param modules: Modules in dependency order.
        :param copy_resources: Populates a destination from a module's packaged bundle.
        """
        os.makedirs(self.resources_root, exist_ok=True)
        for module in modules:
            destination = self.get_module_resources_path(module)
            os.makedirs(destination, exist_ok=True)
            if self._uses_live_resources(module):
                logger.debug("Copying resources of %s from %s", module.name, self.top_level_resources_path)
                sync_tree(self.top_level_resources_path, destination)
            else:
                logger.debug("Copying packaged resources of %s", module.name)
                copy_resources(module, destination)

    def get_module_resources_path(self, module: Module) -> str:
        """
        Returns the resources directory of a module.

        :param module: The module.
        :return: Absolute path of `<resources_root>/<module name>`.
        """
        return os.path.join(self.resources_root, module.name)

    def _uses_live_resources(self, module: Module) -> bool:
        return (
            self.top_level_resources_path is not None
            and module.name == self.top_level_module_name
            and os.path.isdir(self.top_level_resources_path)
        )
