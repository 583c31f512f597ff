"""
Managers for resolving the environment a module's env files define.
"""
from typing import Dict, Optional
from dotenv import dotenv_values
from ..MODELS.module import Module


class EnvironmentManager:
    """
    Merges the env files contributed to a module.
    """
    def get_module_environment(self,
                               module: Module,
                               explicit_env: Optional[Dict[str, str]] = None) -> Dict[str, str]:
        """
        Merges the module's env files in path order, later files overriding earlier ones.

        :param module: A configured module.
        :param explicit_env: Variables overriding every env file.
        :return: The merged variables.
        """
        merged_env: Dict[str, str] = {}
        for env_file in sorted(module.env_files or ()):
            for key, value in dotenv_values(env_file, interpolate=False).items():
                merged_env[key] = value if value is not None else ""
        if explicit_env:
            merged_env.update(explicit_env)
        return merged_env
