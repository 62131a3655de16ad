"""
Pydantic models for student records.
"""

from typing import Optional
from datetime import datetime
from pydantic import BaseModel, Field


class StudentCreate(BaseModel):
    """Request model for an admin creating a student."""
    school_id_tag: str = Field(..., min_length=1, max_length=50, description="School-issued student tag")
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    grade: str = Field(..., min_length=1, max_length=20)
    photo_url: Optional[str] = Field(None, max_length=500, description="Reference to an already stored photo")


class StudentResponse(BaseModel):
    """Response model for a student."""
    id: str
    school_id_tag: str
    first_name: str
    last_name: str
    grade: str
    photo_url: Optional[str]
    created_at: datetime

    class Config:
        from_attributes = True


def student_response_from_row(row) -> StudentResponse:
    """Build a StudentResponse from a students row."""
    return StudentResponse(
        id=str(row["id"]),
        school_id_tag=row["school_id_tag"],
        first_name=row["first_name"],
        last_name=row["last_name"],
        grade=row["grade"],
        photo_url=row["photo_url"],
        created_at=row["created_at"]
    )
