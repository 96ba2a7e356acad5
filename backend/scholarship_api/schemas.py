"""Pydantic request/response schemas used by the API.

Schemas keep API input/output shapes stable and provide validation for
controller handlers and tests. Response schemas never carry password
hashes.
"""

from datetime import date, datetime
from pydantic import BaseModel, Field
from typing import List, Optional


class LoginIn(BaseModel):
    """Payload for the login endpoint."""
    email: str
    password: str


class TokenOut(BaseModel):
    """Authentication response containing an access token."""
    access_token: str
    token_type: str = "bearer"


class PasswordRecoveryRequestIn(BaseModel):
    """Ask for a recovery token to be sent to `email`."""
    email: str = Field(min_length=3, max_length=255)


class PasswordResetIn(BaseModel):
    """Exchange a recovery token for a new password."""
    token: str = Field(min_length=1)
    new_password: str = Field(min_length=6, max_length=128)


class AdvisorIn(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    tax_id: str = Field(min_length=1, max_length=32)


class AdvisorOut(BaseModel):
    id: int
    name: str
    tax_id: str


class ScholarshipIn(BaseModel):
    """Scholarship window supplied when creating a student."""
    scholarship_starts_at: date
    scholarship_ends_at: date


class ScholarshipCreate(ScholarshipIn):
    """Standalone scholarship creation for an existing student."""
    student_id: int


class ScholarshipSummary(BaseModel):
    id: int
    scholarship_starts_at: date
    scholarship_ends_at: date


class StudentSummary(BaseModel):
    id: int
    name: str
    email: str
    enrollment_number: str


class ScholarshipOut(ScholarshipSummary):
    student_id: int
    student: Optional[StudentSummary] = None


class ArticleIn(BaseModel):
    title: str = Field(min_length=1, max_length=300)
    abstract: Optional[str] = None
    url: Optional[str] = None
    published_at: Optional[date] = None


class ArticleOut(BaseModel):
    id: int
    title: str
    abstract: Optional[str] = None
    url: Optional[str] = None
    published_at: Optional[date] = None
    student_id: int
    created_at: Optional[datetime] = None


class StudentCreate(BaseModel):
    """Request format for registering a student with its scholarship."""
    name: str = Field(min_length=1, max_length=200)
    email: str = Field(min_length=3, max_length=255)
    tax_id: str = Field(min_length=1, max_length=32)
    enrollment_number: str = Field(min_length=1, max_length=64)
    course: str = Field(min_length=1, max_length=200)
    password: str = Field(min_length=6, max_length=128)
    advisor_id: int
    scholarship: ScholarshipIn


class StudentUpdate(BaseModel):
    """Partial update keyed by `tax_id`; omitted fields are left untouched."""
    tax_id: str
    name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    email: Optional[str] = Field(default=None, min_length=3, max_length=255)
    enrollment_number: Optional[str] = Field(default=None, min_length=1, max_length=64)
    course: Optional[str] = Field(default=None, min_length=1, max_length=200)
    password: Optional[str] = Field(default=None, min_length=6, max_length=128)
    advisor_id: Optional[int] = None


class StudentOut(BaseModel):
    id: int
    name: str
    email: str
    tax_id: str
    enrollment_number: str
    course: str
    advisor_id: int
    articles: List[ArticleOut] = []
    scholarship: Optional[ScholarshipSummary] = None


class PageMeta(BaseModel):
    total_items: int
    item_count: int
    items_per_page: int
    total_pages: int
    current_page: int


class StudentPage(BaseModel):
    data: List[StudentOut]
    meta: PageMeta
