"""Response model for the `/health` check."""

from pydantic import BaseModel, Field


class HealthResponse(BaseModel):
    """
    What:  Service and dependency status.
    Who:   Returned by GET /health for container health checks and load balancers.
    """

    status: str = Field(description="Overall service status: healthy, degraded, unhealthy")
    version: str = Field(description="Application version")
    database: str = Field(description="Database connectivity: connected, disconnected")
    storage: str = Field(description="Upload directory: writable, unwritable")
    uptime_seconds: float = Field(description="Seconds since service started")
