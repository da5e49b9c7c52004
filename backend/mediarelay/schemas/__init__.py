"""Pydantic v2 schemas package."""

from mediarelay.schemas.requests import (
    AssemblyAIRequest,
    HeyGenRequest,
    JobRequestBody,
    KlingRequest,
    SoraRequest,
    SupadataRequest,
    VeoRequest,
)

__all__ = [
    "AssemblyAIRequest",
    "HeyGenRequest",
    "JobRequestBody",
    "KlingRequest",
    "SoraRequest",
    "SupadataRequest",
    "VeoRequest",
]
