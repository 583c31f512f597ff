"""
Name normalization shared by the compose project and its network.
"""
import re

_NON_ALPHANUMERIC = re.compile(r"[^A-Za-z0-9]")


def normalize_project_name(name: str) -> str:
    """
    Normalizes a name the way docker-compose derives project names:
    every character outside [A-Za-z0-9] is dropped and the rest lowercased.

    :param name: The raw module name.
    :return: The normalized name, e.g. "My-App_2" -> "myapp2".
    """
    return _NON_ALPHANUMERIC.sub("", name).lower()


def network_name(project_name: str, network_key: str) -> str:
    """
    Returns the name docker-compose gives to a network declared under
    `network_key` in the project `project_name`.
    """
    return f"{normalize_project_name(project_name)}_{network_key}"
