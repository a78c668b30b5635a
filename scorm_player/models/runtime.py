"""Request/response DTOs for the runtime session endpoints."""

from typing import Dict, List, Optional
from pydantic import BaseModel, Field


class SessionCreate(BaseModel):
    packageId: str = Field(..., min_length=1)
    itemIdentifier: str = Field(..., min_length=1)
    studentId: Optional[str] = Field(None, max_length=255)
    studentName: Optional[str] = Field(None, max_length=255)


class SessionOut(BaseModel):
    sessionId: str
    packageId: str
    itemIdentifier: str
    href: Optional[str] = None
    state: str
    lastError: str
    data: Dict[str, str] = Field(default_factory=dict)


class ApiCall(BaseModel):
    method: str = Field(
        ..., min_length=1, description="Legacy or current protocol call name"
    )
    args: List[str] = Field(default_factory=list, max_length=2)


class ApiCallResult(BaseModel):
    method: str
    result: str
    lastError: str
