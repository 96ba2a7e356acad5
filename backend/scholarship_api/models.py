"""SQLModel data models.

This module defines the application's database tables using SQLModel.
Each class maps to a table and uses relationships where appropriate.
Uniqueness invariants are declared here as unique constraints so the
storage layer enforces them even when two requests race past the
service-level checks.
"""

from typing import Optional
from sqlmodel import SQLModel, Field, Relationship
from datetime import datetime, date, timezone
from typing import List


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Advisor(SQLModel, table=True):
    """A staff member supervising one or more students."""
    __tablename__ = "advisors"

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str
    tax_id: str = Field(index=True, unique=True, nullable=False)
    created_at: datetime = Field(default_factory=_utcnow)
    students: List['Student'] = Relationship(back_populates='advisor')


class Student(SQLModel, table=True):
    """A registered student.

    Fields:
    - `email`, `tax_id`, `enrollment_number`: unique across all students
    - `password`: hashed password string (never store plaintext)
    """
    __tablename__ = "students"

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str
    email: str = Field(index=True, unique=True, nullable=False)
    tax_id: str = Field(index=True, unique=True, nullable=False)
    enrollment_number: str = Field(index=True, unique=True, nullable=False)
    course: str = Field(index=True)
    password: str
    advisor_id: int = Field(foreign_key='advisors.id', index=True)
    created_at: datetime = Field(default_factory=_utcnow)
    advisor: Optional[Advisor] = Relationship(back_populates='students')
    articles: List['Article'] = Relationship(back_populates='student')
    scholarship: Optional['Scholarship'] = Relationship(
        back_populates='student',
        sa_relationship_kwargs={'uselist': False},
    )


class Scholarship(SQLModel, table=True):
    """The scholarship window granted to a single student.

    `scholarship_starts_at` must be strictly before `scholarship_ends_at`.
    """
    __tablename__ = "scholarships"

    id: Optional[int] = Field(default=None, primary_key=True)
    student_id: int = Field(foreign_key='students.id', unique=True, nullable=False)
    scholarship_starts_at: date
    scholarship_ends_at: date
    student: Optional[Student] = Relationship(back_populates='scholarship')


class Article(SQLModel, table=True):
    """An article published by a student."""
    __tablename__ = "articles"

    id: Optional[int] = Field(default=None, primary_key=True)
    title: str
    abstract: Optional[str] = None
    url: Optional[str] = None
    published_at: Optional[date] = None
    student_id: int = Field(foreign_key='students.id', index=True)
    created_at: datetime = Field(default_factory=_utcnow)
    student: Optional[Student] = Relationship(back_populates='articles')


class PasswordRecoveryToken(SQLModel, table=True):
    """A single-use password recovery token.

    Only the sha256 digest of the token is stored; the plaintext token
    leaves the system exclusively through the e-mail sender.
    """
    __tablename__ = "password_recovery_tokens"

    id: Optional[int] = Field(default=None, primary_key=True)
    student_id: int = Field(foreign_key='students.id', index=True)
    token_hash: str = Field(index=True, unique=True, nullable=False)
    expires_at: datetime
    used_at: Optional[datetime] = None
    created_at: datetime = Field(default_factory=_utcnow)
