"""
Models for resolved modules of the dependency graph.
"""
from typing import Dict, FrozenSet, List, Optional
from pydantic import BaseModel, ConfigDict

from ..UTILS.image_reference import ImageReference


class ModuleCoordinate(BaseModel):
    """
    Identity of a module in the dependency graph.
    """
    model_config = ConfigDict(frozen=True)

    group: str = ""
    name: str
    version: str = ""

    def __str__(self) -> str:
        return f"{self.group}:{self.name}:{self.version}"


class Module(BaseModel):
    """
    A resolved module, optionally backed by a container image.

    Modules are immutable; every enrichment stage produces a copy through
    `model_copy(update=...)`.
    """
    model_config = ConfigDict(frozen=True)

    coordinate: ModuleCoordinate
    name: str
    image_name: Optional[str] = None
    container_name: Optional[str] = None
    properties: Dict[str, str] = {}
    entrypoint: Optional[List[str]] = None

    # Bind specs, "host:container"
    volumes: FrozenSet[str] = frozenset()
    # None when no env file is contributed
    env_files: Optional[FrozenSet[str]] = None

    @property
    def short_image_name(self) -> Optional[str]:
        """
        The image name without registry, namespace, tag or digest.
        """
        if not self.image_name:
            return None
        return ImageReference.parse(self.image_name).short_name
