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
Parser for module manifest YAML files.
"""
import os
import yaml
from typing import Any, Dict, List, Optional
from ..MODELS.module_manifest import ModuleManifest, ModuleSpec
from ..UTILS.string_interpolation import EnvironmentInterpolator


class ManifestParser:
    """
    Parser for m2c.yml module manifests.
    """
    def __init__(self, context: Optional[Dict[str, str]] = None):
        """
        Initializes the parser with an optional environment context for interpolation.

        :param context: A dictionary of environment variables for interpolation.
        """
        self.context = context if context is not None else dict(os.environ)

    def parse(self, manifest_path: str) -> ModuleManifest:
        """
        Parses a manifest from a path. Relative resource paths are resolved
        against the manifest's directory.

        :param manifest_path: Path to the manifest.
        :return: Parsed manifest.
        """
        with open(manifest_path, 'r') as f:
            content = f.read()
        base_dir = os.path.dirname(os.path.abspath(manifest_path))
        return self.parse_from_string(content, base_dir=base_dir)

    def parse_from_string(self, content: str, base_dir: Optional[str] = None) -> ModuleManifest:
        """
        Parses a manifest from a string.

        :param content: YAML content of the manifest.
        :param base_dir: Directory relative resource paths are resolved against.
        :return: Parsed manifest.
        """
        # Unset variables without default resolve to an empty string, like in compose files
        content = EnvironmentInterpolator.interpolate(content, self.context, strict=False)

        data = yaml.safe_load(content) or {}
        modules = {}
        for name, spec in (data.get('modules') or {}).items():
            modules[str(name)] = self._parse_module(spec or {}, base_dir)

        return ModuleManifest(root=data.get('root'), modules=modules)

    def _parse_module(self, spec: Dict[str, Any], base_dir: Optional[str]) -> ModuleSpec:
        """
        Parses a single module declaration.

        :param spec: The module dictionary.
        :param base_dir: Directory relative resource paths are resolved against.
        :return: A ModuleSpec instance.
        """
        resources = spec.get('resources')
        if resources and base_dir and not os.path.isabs(resources):
            resources = os.path.normpath(os.path.join(base_dir, resources))

        entrypoint = spec.get('entrypoint')
        return ModuleSpec(
            group=str(spec.get('group', '')),
            version=str(spec.get('version', '')),
            image=spec.get('image'),
            container_name=spec.get('container_name'),
            entrypoint=self._to_list(entrypoint) if entrypoint is not None else None,
            properties={str(k): str(v) for k, v in (spec.get('properties') or {}).items()},
            depends_on=self._to_list(spec.get('depends_on', [])),
            resources=resources,
        )

    def _to_list(self, val: Any) -> List[str]:
        """
        Helper to ensure a value is a list of strings.

        :param val: The value to convert.
        :return: A list of strings.
        """
        if val is None:
            return []
        if isinstance(val, str):
            return [val]
        return [str(v) for v in val]
