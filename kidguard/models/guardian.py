"""
Pydantic models for guardianship requests and responses.
"""

from typing import Optional
from uuid import UUID
from pydantic import BaseModel, EmailStr, Field, model_validator, validator


class LinkGuardianRequest(BaseModel):
    """Request model for linking a guardian to a student.

    The target guardian is identified by email or by user id.
    """
    student_id: UUID = Field(..., description="UUID of the student")
    guardian_email: Optional[EmailStr] = Field(None, description="Email of the guardian to link")
    guardian_id: Optional[UUID] = Field(None, description="UUID of the guardian to link")
    is_primary: bool = Field(default=False, description="Grant primary guardianship")

    @validator('guardian_email')
    def email_lowercase(cls, v):
        return v.lower() if v is not None else v

    @model_validator(mode="after")
    def target_given(self):
        if self.guardian_email is None and self.guardian_id is None:
            raise ValueError('guardian_email or guardian_id is required')
        return self


class LinkResult(BaseModel):
    """Response model for a guardian link."""
    message: str
    guardian_id: str
    student_id: str
    is_primary: bool
    created: bool = Field(..., description="False when an existing link was updated")


class MyStudentResponse(BaseModel):
    """A student linked to the current user, with link metadata."""
    id: str
    school_id_tag: str
    first_name: str
    last_name: str
    grade: str
    photo_url: Optional[str]
    is_primary: bool
    linked_by_name: Optional[str]

    class Config:
        from_attributes = True
