"""Database connection models."""

from typing import Optional

from pydantic import BaseModel


class ConnectionStatus(BaseModel):
    """Result of a connection check against the analysed database."""

    database: str
    connected: bool
    latency_ms: Optional[float] = None
    error: Optional[str] = None
