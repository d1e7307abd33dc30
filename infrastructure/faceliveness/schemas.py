"""
Request and response models for the known-faces registry API.
"""

from typing import List, Optional

from pydantic import BaseModel, Field, field_validator


class RegisterFaceRequest(BaseModel):
    """Request model for face registration."""
    username: str = Field(..., description="Name the descriptor is registered under")
    descriptor: List[float] = Field(..., description="Averaged face descriptor")

    @field_validator('username')
    @classmethod
    def validate_username(cls, v):
        if not v or not v.strip():
            raise ValueError("Username must be a non-empty string")
        return v.strip()

    @field_validator('descriptor')
    @classmethod
    def validate_descriptor(cls, v):
        if not v:
            raise ValueError("Descriptor cannot be empty")
        return v


class RegisterFaceResponse(BaseModel):
    success: bool
    message: Optional[str] = None


class KnownFace(BaseModel):
    username: str
    descriptor: List[float]


class VerifyFaceRequest(BaseModel):
    """Request model for server-side verification."""
    descriptor: List[float] = Field(..., description="Probe face descriptor")

    @field_validator('descriptor')
    @classmethod
    def validate_descriptor(cls, v):
        if not v:
            raise ValueError("Descriptor cannot be empty")
        return v


class VerifyFaceResponse(BaseModel):
    success: bool
    username: Optional[str] = None
    distance: Optional[float] = None
    message: Optional[str] = None


class HealthResponse(BaseModel):
    status: str
    version: str
    store_backend: str
    known_faces: int
    match_threshold: float
