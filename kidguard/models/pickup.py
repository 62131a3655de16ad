"""
Pydantic models for pickup sessions, redemption and history.
"""

from enum import Enum
from typing import Optional
from uuid import UUID
from datetime import datetime
from pydantic import BaseModel, Field


class SessionStatus(str, Enum):
    """Pickup session states. EXPIRED and VERIFIED are terminal."""
    GENERATED = "GENERATED"
    EXPIRED = "EXPIRED"
    VERIFIED = "VERIFIED"


class PickupTokenRequest(BaseModel):
    """Request model for a guardian asking for a pickup token."""
    student_id: UUID = Field(..., description="UUID of the student to collect")


class PickupTokenResponse(BaseModel):
    """Response model for an issued (or reused) pickup token."""
    message: str
    session_id: str
    qr_token: str
    expires_at: datetime
    validity_minutes: int
    reused: bool


class RedeemRequest(BaseModel):
    """Request model for security redeeming a scanned token."""
    qr_token: str = Field(..., description="Scanned pickup token")
    pickup_notes: Optional[str] = Field(None, max_length=1000, description="Free-form notes")


class StudentSummary(BaseModel):
    name: str
    grade: str


class GuardianSummary(BaseModel):
    name: str
    phone: Optional[str]


class RedeemResponse(BaseModel):
    """Confirmation bundle shown to the security officer at the gate."""
    message: str
    log_id: str
    session_id: str
    verified_at: datetime
    student: StudentSummary
    guardian: GuardianSummary
    verified_by: str


class PickupHistoryEntry(BaseModel):
    """One verified pickup, joined with display fields."""
    log_id: str
    session_id: str
    verified_at: datetime
    pickup_notes: Optional[str]
    student_name: str
    grade: str
    guardian_name: str
    security_name: str
    security_email: str
