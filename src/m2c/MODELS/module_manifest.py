"""
Models for the declarative module manifest.
"""
from typing import Dict, List, Optional
from pydantic import BaseModel


class ModuleSpec(BaseModel):
    """
    Declaration of a single module as written in the manifest.
    """
    group: str = ""
    version: str = ""
    image: Optional[str] = None
    container_name: Optional[str] = None
    entrypoint: Optional[List[str]] = None
    properties: Dict[str, str] = {}
    depends_on: List[str] = []

    # Directory or archive holding the module's packaged resources
    resources: Optional[str] = None


class ModuleManifest(BaseModel):
    """
    All modules known to a manifest, keyed by module name.
    """
    root: Optional[str] = None
    modules: Dict[str, ModuleSpec] = {}
