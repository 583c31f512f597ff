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
Aggregation of resolved modules with their resources, file volumes, env files and extensions.
"""
import logging
import os
import posixpath
import tempfile
import threading
from typing import Callable, Dict, FrozenSet, List, Optional, Sequence

from ..MODELS.module import Module, ModuleCoordinate
from ..RUNNERS.dependency_resolver import DependencyResolver
from .resource_overlay_manager import ResourceOverlayManager

logger = logging.getLogger(__name__)

# Receives the graph and the current module list, returns the replacement list.
# Extensions must not call ModuleGraph.get_modules() themselves.
Extension = Callable[["ModuleGraph", List[Module]], List[Module]]

FILES_DIR = "files"
ENV_DIR = "env"


class ModuleGraph:
    """
    A full environment: the resolved modules of a top-level module and their configuration.
    """
    def __init__(self,
                 top_level_coordinate: ModuleCoordinate,
                 resolver: DependencyResolver,
                 resources_root: Optional[str] = None,
                 extensions: Optional[Sequence[Extension]] = None,
                 top_level_resources_path: Optional[str] = None):
        """
        Initializes the module graph.

        :param top_level_coordinate: The module the environment is built for.
        :param resolver: Resolves the dependency closure and copies packaged resources.
        :param resources_root: Working directory for resources, a fresh temporary
            directory when omitted. That directory is never removed by the graph;
            the caller owns its cleanup.
        :param extensions: Functions applied in order to the enriched module list.
        :param top_level_resources_path: Live resources of the top-level module,
            used instead of its packaged bundle.
        """
        self.top_level_coordinate = top_level_coordinate
        self.resolver = resolver
        self.top_level_module_name = resolver.get_module_name(top_level_coordinate)
        self.extensions: List[Extension] = list(extensions or [])

        if resources_root is None:
            resources_root = tempfile.mkdtemp(prefix="m2c_")
        self.resources_folder = os.path.join(os.path.abspath(resources_root), self.top_level_module_name)
        logger.debug("Creating module graph for [%s] in [%s]", top_level_coordinate, self.resources_folder)

        self.overlay_manager = ResourceOverlayManager(
            self.resources_folder,
            top_level_module_name=self.top_level_module_name,
            top_level_resources_path=top_level_resources_path,
        )
        self._modules: Optional[List[Module]] = None
        self._lock = threading.Lock()

    def get_modules(self) -> List[Module]:
        """
        Returns the fully configured modules, computing them on first call.

        :return: Modules in dependency order.
        :raises ResolutionError: If the dependency closure cannot be resolved.
        """
        with self._lock:
            if self._modules is None:
                self._modules = self._compute_modules()
            return list(self._modules)

    def get_module_resources_path(self, module: Module) -> str:
        return self.overlay_manager.get_module_resources_path(module)

    def _compute_modules(self) -> List[Module]:
        logger.debug("Resolving module dependencies")
        modules = self.resolver.resolve(self.top_level_coordinate)

        logger.debug("Resolving module resources")
        self.overlay_manager.resolve_resources(modules, self.resolver.copy_module_resources)

        logger.debug("Configuring individual file volumes")
        modules = [m.model_copy(update={"volumes": self._get_file_volumes(m, modules)}) for m in modules]

        logger.debug("Configuring env_file volumes")
        modules = [m.model_copy(update={"env_files": self._get_env_files(m, modules)}) for m in modules]

        for extension in self.extensions:
            logger.debug("Extension [%s] enabled", getattr(extension, "__name__", type(extension).__name__))
            modules = list(extension(self, modules))
        return modules

    def _get_file_volumes(self, module: Module, modules: List[Module]) -> FrozenSet[str]:
        """
        Collects the files other modules place under `<module name>/files/`.
        The container path is the file's path below `files/`, rooted at `/`.
        On a collision the contributor iterated last wins.
        """
        targets: Dict[str, str] = {}
        for contributor in modules:
            files_dir = os.path.join(self.get_module_resources_path(contributor), module.name, FILES_DIR)
            if not os.path.isdir(files_dir):
                continue
            try:
                found = _list_files(files_dir)
            except OSError:
                logger.error("Error while reading files of %s for module %s",
                             contributor.name, module.name, exc_info=True)
                continue
            for host_path in found:
                relative = os.path.relpath(host_path, files_dir).replace(os.sep, "/")
                targets[posixpath.join("/", relative)] = host_path
        return frozenset(f"{host}:{target}" for target, host in targets.items())

    def _get_env_files(self, module: Module, modules: List[Module]) -> Optional[FrozenSet[str]]:
        """
        Collects the env files other modules place under `<module name>/env/`.
        Returns None when there are none.
        """
        env_files = set()
        for contributor in modules:
            env_dir = os.path.join(self.get_module_resources_path(contributor), module.name, ENV_DIR)
            if not os.path.isdir(env_dir):
                continue
            try:
                env_files.update(_list_files(env_dir))
            except OSError:
                logger.error("Error while reading env files of %s for module %s",
                             contributor.name, module.name, exc_info=True)
        return frozenset(env_files) if env_files else None


def _list_files(directory: str) -> List[str]:
    """
    Lists regular files below directory in a stable order.

    :raises OSError: If any part of the tree cannot be read.
    """
    def raise_error(error):
        raise error

    found = []
    for root, dirs, files in os.walk(directory, onerror=raise_error):
        dirs.sort()
        for name in sorted(files):
            path = os.path.join(root, name)
            if os.path.isfile(path):
                found.append(path)
    return found
