"""
Models for containers reported by the orchestration backend.
"""
from typing import Optional
from pydantic import BaseModel, ConfigDict


class ContainerInfo(BaseModel):
    """
    Snapshot of a running or stopped container of the environment.
    Fetched fresh on every query, never persisted.
    """
    model_config = ConfigDict(frozen=True)

    id: str
    service_name: str
    running: bool = False
    ip_address: Optional[str] = None
