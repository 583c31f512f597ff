"""
Dependency resolution for modules: the resolver contract and a manifest backed implementation.
"""
import logging
import os
import shutil
import tempfile
from abc import ABC, abstractmethod
from typing import List, Union

from ..MODELS.module import Module, ModuleCoordinate
from ..MODELS.module_manifest import ModuleManifest
from ..UTILS.file_sync import sync_tree
from ..UTILS.naming import normalize_project_name

logger = logging.getLogger(__name__)

ARCHIVE_SUFFIXES = (".zip", ".tar", ".tar.gz", ".tgz", ".tar.bz2", ".tar.xz")


class ResolutionError(RuntimeError):
    """
    Raised when the module dependency closure cannot be resolved.
    """


class DependencyResolver(ABC):
    """
    Resolves a root module into its ordered dependency closure.
    """
    @abstractmethod
    def resolve(self, coordinate: ModuleCoordinate) -> List[Module]:
        """
        Returns the ordered list of modules the root module depends on, itself included.
        """

    @abstractmethod
    def get_module_name(self, coordinate: ModuleCoordinate) -> str:
        """
        Returns the module name used for directories and services.
        """

    @abstractmethod
    def copy_module_resources(self, module: Module, destination: str) -> None:
        """
        Populates `destination` with the module's packaged resources.
        """


class ManifestDependencyResolver(DependencyResolver):
    """
    Resolves modules declared in a module manifest.
    Dependencies are ordered before their dependents; the root module comes last.
    """
    def __init__(self, manifest: ModuleManifest):
        """
        Initializes the resolver.

        :param manifest: The parsed module manifest.
        """
        self.manifest = manifest

    def get_module_name(self, coordinate: Union[ModuleCoordinate, str]) -> str:
        return coordinate if isinstance(coordinate, str) else coordinate.name

    def resolve(self, coordinate: Union[ModuleCoordinate, str]) -> List[Module]:
        """
        Determines the dependency closure of the root module using topological sort.

        :param coordinate: The root module.
        :return: Modules in dependency order.
        :raises ResolutionError: If a module is unknown or a circular dependency is detected.
        """
        root = self.get_module_name(coordinate)
        modules = self.manifest.modules
        if root not in modules:
            raise ResolutionError(f"Module {root} is not declared in the manifest")

        ordered = []
        visited = set()
        processing = set()

        def visit(name, parent=None):
            if name not in modules:
                raise ResolutionError(f"Module {parent} depends on undeclared module {name}")
            if name in processing:
                raise ResolutionError(f"Circular dependency detected involving {name}")
            if name not in visited:
                processing.add(name)
                for dep in modules[name].depends_on:
                    visit(dep, name)
                processing.remove(name)
                visited.add(name)
                ordered.append(name)

        visit(root)
        logger.debug("Resolved %s to %s", root, ordered)

        project = normalize_project_name(root)
        return [self._to_module(name, project) for name in ordered]

    def _to_module(self, name: str, project: str) -> Module:
        spec = self.manifest.modules[name]
        return Module(
            coordinate=ModuleCoordinate(group=spec.group, name=name, version=spec.version),
            name=name,
            image_name=spec.image,
            container_name=spec.container_name or f"{project}_{name}_1",
            properties=dict(spec.properties),
            entrypoint=spec.entrypoint,
        )

    def copy_module_resources(self, module: Module, destination: str) -> None:
        """
        Copies a module's resources directory, or unpacks its resources archive, into destination.

        :param module: The module whose resources are copied.
        :param destination: The module's resources directory.
        :raises ResolutionError: If the declared resources do not exist.
        """
        spec = self.manifest.modules.get(module.name)
        if spec is None or not spec.resources:
            return
        source = spec.resources
        if os.path.isdir(source):
            sync_tree(source, destination)
        elif os.path.isfile(source) and source.endswith(ARCHIVE_SUFFIXES):
            with tempfile.TemporaryDirectory(prefix="m2c_unpack_") as unpacked:
                shutil.unpack_archive(source, unpacked)
                sync_tree(unpacked, destination)
        else:
            raise ResolutionError(f"Resources {source} of module {module.name} not found")
