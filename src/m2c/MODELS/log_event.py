"""
Models for captured container log lines.
"""
from dataclasses import dataclass
from datetime import datetime
from typing import Optional


@dataclass(frozen=True)
class LogEvent:
    """A single line emitted by a container."""

    service: str
    container_id: str
    message: str
    timestamp: Optional[datetime] = None

    def __str__(self) -> str:
        return f"{self.service:15} | {self.message}"
