"""Common Pydantic schemas used across the application"""

from datetime import datetime
from typing import Dict, Any, Optional
from pydantic import BaseModel, Field

from lynxa.utils.datetime import utcnow


class ErrorResponse(BaseModel):
    """Schema for error response"""
    detail: str = Field(..., description="Human-readable error message")
    type: str = Field(..., description="Stable machine-readable error code")
    timestamp: datetime = Field(default_factory=utcnow, description="Error timestamp")
    details: Optional[Dict[str, Any]] = Field(None, description="Additional error details")


class HealthCheck(BaseModel):
    """Schema for health check response"""
    status: str = Field(..., pattern=r'^(healthy|unhealthy|degraded)$')
    timestamp: datetime = Field(default_factory=utcnow)
    services: Dict[str, bool] = Field(
        default_factory=dict,
        description="Status of individual service checks"
    )
    version: Optional[str] = Field(None, description="Application version")
