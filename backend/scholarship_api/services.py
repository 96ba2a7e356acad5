"""Business logic services used by HTTP controllers.

This module holds small service classes that coordinate repositories
and auxiliary logic. Services are intentionally thin: they perform
validation, persist aggregates via repositories and shape entities into
response schemas. Every failure is signalled by raising an exception
from `errors`; no service returns error values.
"""

from datetime import date, datetime, timedelta, timezone
import json
import logging
import math
from typing import List, Optional

from sqlalchemy.exc import IntegrityError
from sqlmodel import Session

from . import models, repositories, schemas
from .config import settings
from .errors import NotFoundError, ValidationError
from .notifications import EmailSender, recovery_message
from .security import (
    create_access_token,
    hash_password,
    hash_recovery_token,
    new_recovery_token,
    verify_password,
)

logger = logging.getLogger("scholarship_api.services")


def _log(event: str, **fields) -> None:
    logger.info("%s %s", event, json.dumps(fields, ensure_ascii=True, default=str))


def to_advisor_out(advisor: models.Advisor) -> schemas.AdvisorOut:
    return schemas.AdvisorOut(id=advisor.id, name=advisor.name, tax_id=advisor.tax_id)


def to_article_out(article: models.Article) -> schemas.ArticleOut:
    return schemas.ArticleOut(
        id=article.id,
        title=article.title,
        abstract=article.abstract,
        url=article.url,
        published_at=article.published_at,
        student_id=article.student_id,
        created_at=article.created_at,
    )


def to_student_out(student: models.Student) -> schemas.StudentOut:
    """Shape a `Student` with its articles and scholarship for responses."""
    scholarship = None
    if student.scholarship is not None:
        scholarship = schemas.ScholarshipSummary(
            id=student.scholarship.id,
            scholarship_starts_at=student.scholarship.scholarship_starts_at,
            scholarship_ends_at=student.scholarship.scholarship_ends_at,
        )
    return schemas.StudentOut(
        id=student.id,
        name=student.name,
        email=student.email,
        tax_id=student.tax_id,
        enrollment_number=student.enrollment_number,
        course=student.course,
        advisor_id=student.advisor_id,
        articles=[to_article_out(a) for a in student.articles],
        scholarship=scholarship,
    )


def to_scholarship_out(scholarship: models.Scholarship) -> schemas.ScholarshipOut:
    owner = None
    if scholarship.student is not None:
        owner = schemas.StudentSummary(
            id=scholarship.student.id,
            name=scholarship.student.name,
            email=scholarship.student.email,
            enrollment_number=scholarship.student.enrollment_number,
        )
    return schemas.ScholarshipOut(
        id=scholarship.id,
        student_id=scholarship.student_id,
        scholarship_starts_at=scholarship.scholarship_starts_at,
        scholarship_ends_at=scholarship.scholarship_ends_at,
        student=owner,
    )


def check_scholarship_window(starts_at: date, ends_at: date) -> None:
    """Raise unless the scholarship window is non-empty."""
    if starts_at >= ends_at:
        raise ValidationError('Scholarship start date must be before the end date')


class AuthService:
    """Authentication for students (email + password)."""
    def __init__(self, session: Session):
        self.session = session
        self.student_repo = repositories.StudentRepository(session)

    def authenticate(self, email: str, password: str) -> Optional[str]:
        """Verify credentials and return a signed JWT token on success.

        Returns `None` if authentication fails.
        """
        student = self.student_repo.get_by_email(email)
        if not student:
            return None
        if not verify_password(password, student.password):
            return None
        return create_access_token(student.id, student.email)


class AdvisorService:
    """Advisor registration and lookup."""
    def __init__(self, session: Session):
        self.session = session
        self.advisor_repo = repositories.AdvisorRepository(session)

    def create(self, payload: schemas.AdvisorIn) -> models.Advisor:
        if self.advisor_repo.get_by_tax_id(payload.tax_id):
            raise ValidationError('Tax ID already registered')
        advisor = models.Advisor(name=payload.name, tax_id=payload.tax_id)
        try:
            return self.advisor_repo.create(advisor)
        except IntegrityError:
            self.session.rollback()
            raise ValidationError('Tax ID already registered')

    def find_all(self) -> List[models.Advisor]:
        return self.advisor_repo.list_all()

    def find_one_by_id(self, advisor_id: int) -> models.Advisor:
        advisor = self.advisor_repo.get(advisor_id)
        if not advisor:
            raise NotFoundError('Advisor not found')
        return advisor


class ScholarshipService:
    """Create and query scholarships."""
    def __init__(self, session: Session):
        self.session = session
        self.scholarship_repo = repositories.ScholarshipRepository(session)
        self.student_repo = repositories.StudentRepository(session)

    def create(self, window: schemas.ScholarshipIn, student_id: int, commit: bool = True) -> models.Scholarship:
        """Persist a scholarship window for `student_id`.

        With `commit=False` the row is only flushed, leaving the
        transaction open for the caller to commit together with its own
        writes.
        """
        check_scholarship_window(window.scholarship_starts_at, window.scholarship_ends_at)
        if not self.student_repo.get(student_id):
            raise NotFoundError('Student not found')
        if self.scholarship_repo.get_by_student(student_id):
            raise ValidationError('Student already has a scholarship')
        scholarship = models.Scholarship(
            student_id=student_id,
            scholarship_starts_at=window.scholarship_starts_at,
            scholarship_ends_at=window.scholarship_ends_at,
        )
        try:
            self.scholarship_repo.add(scholarship, commit=commit)
        except IntegrityError:
            self.session.rollback()
            raise ValidationError('Student already has a scholarship')
        _log('scholarship_created', student_id=student_id, committed=commit)
        return scholarship

    def find_all(self) -> List[schemas.ScholarshipOut]:
        return [to_scholarship_out(s) for s in self.scholarship_repo.list_all()]

    def find_one_by_id(self, scholarship_id: int) -> schemas.ScholarshipOut:
        scholarship = self.scholarship_repo.get(scholarship_id)
        if not scholarship:
            raise NotFoundError('Scholarship not found')
        return to_scholarship_out(scholarship)


class StudentService:
    """Student registration, queries and updates.

    Registration validates cross-entity rules before writing anything and
    then stores the student and its scholarship in a single transaction.
    The unique constraints on the table catch registrations that race
    past the read checks.
    """
    def __init__(
        self,
        session: Session,
        advisor_service: Optional[AdvisorService] = None,
        scholarship_service: Optional[ScholarshipService] = None,
    ):
        self.session = session
        self.student_repo = repositories.StudentRepository(session)
        self.advisor_service = advisor_service or AdvisorService(session)
        self.scholarship_service = scholarship_service or ScholarshipService(session)

    def create_student(self, payload: schemas.StudentCreate) -> schemas.StudentOut:
        if self.student_repo.get_by_email(payload.email):
            raise ValidationError('Email already registered')
        advisor = self.advisor_service.find_one_by_id(payload.advisor_id)
        if advisor.tax_id == payload.tax_id:
            raise ValidationError('Tax ID belongs to the advisor')
        if self.student_repo.get_by_tax_id(payload.tax_id):
            raise ValidationError('Tax ID already registered')
        if self.student_repo.get_by_enrollment_number(payload.enrollment_number):
            raise ValidationError('Enrollment number already registered')
        check_scholarship_window(
            payload.scholarship.scholarship_starts_at,
            payload.scholarship.scholarship_ends_at,
        )

        student = models.Student(
            name=payload.name,
            email=payload.email,
            tax_id=payload.tax_id,
            enrollment_number=payload.enrollment_number,
            course=payload.course,
            password=hash_password(payload.password),
            advisor_id=advisor.id,
        )
        try:
            self.student_repo.add(student)
            self.scholarship_service.create(payload.scholarship, student.id, commit=False)
            self.session.commit()
        except IntegrityError:
            self.session.rollback()
            logger.warning("student_create_conflict %s", json.dumps({"email": payload.email}))
            raise ValidationError('Student already registered')
        except Exception:
            self.session.rollback()
            raise
        self.session.refresh(student)
        _log('student_created', student_id=student.id, advisor_id=student.advisor_id)
        return to_student_out(student)

    def find_all_students(self) -> List[schemas.StudentOut]:
        return [to_student_out(s) for s in self.student_repo.list_all()]

    def find_all_students_paginate(self, page: int = 1, limit: Optional[int] = None) -> schemas.StudentPage:
        """Return one page of students plus paging metadata.

        `page` is 1-based; `limit` defaults to `DEFAULT_PAGE_SIZE` and is
        capped at `MAX_PAGE_SIZE`.
        """
        if limit is None:
            limit = settings.DEFAULT_PAGE_SIZE
        if page < 1 or limit < 1:
            raise ValidationError('page and limit must be positive')
        limit = min(limit, settings.MAX_PAGE_SIZE)
        total = self.student_repo.count()
        items = self.student_repo.list_all(offset=(page - 1) * limit, limit=limit)
        meta = schemas.PageMeta(
            total_items=total,
            item_count=len(items),
            items_per_page=limit,
            total_pages=math.ceil(total / limit) if total else 0,
            current_page=page,
        )
        return schemas.StudentPage(data=[to_student_out(s) for s in items], meta=meta)

    def find_by_id(self, student_id: int) -> schemas.StudentOut:
        student = self.student_repo.get(student_id)
        if not student:
            raise NotFoundError('Student not found')
        return to_student_out(student)

    def find_by_course(self, course: str) -> List[schemas.StudentOut]:
        return [to_student_out(s) for s in self.student_repo.list_by_course(course)]

    def find_by_email(self, email: str) -> schemas.StudentOut:
        student = self.student_repo.get_by_email(email)
        if not student:
            raise NotFoundError('Student not found')
        return to_student_out(student)

    def find_by_advisor_id(self, advisor_id: int) -> List[schemas.StudentOut]:
        return [to_student_out(s) for s in self.student_repo.list_by_advisor(advisor_id)]

    def update_password(self, email: str, password: str) -> None:
        student = self.student_repo.get_by_email(email)
        if not student:
            raise NotFoundError('Student not found')
        student.password = hash_password(password)
        self.student_repo.save(student)
        _log('student_password_updated', student_id=student.id)

    def update_student(self, payload: schemas.StudentUpdate) -> schemas.StudentOut:
        """Apply a partial update to the student identified by `tax_id`.

        Changed email, enrollment number and advisor are re-checked
        against the same rules as registration. The password is rehashed
        only when supplied.
        """
        student = self.student_repo.get_by_tax_id(payload.tax_id)
        if not student:
            raise NotFoundError('Student not found')
        changes = {
            k: v
            for k, v in payload.model_dump(exclude_unset=True, exclude={'tax_id'}).items()
            if v is not None
        }
        if 'email' in changes and changes['email'] != student.email:
            if self.student_repo.get_by_email(changes['email']):
                raise ValidationError('Email already registered')
        if 'enrollment_number' in changes and changes['enrollment_number'] != student.enrollment_number:
            if self.student_repo.get_by_enrollment_number(changes['enrollment_number']):
                raise ValidationError('Enrollment number already registered')
        if 'advisor_id' in changes and changes['advisor_id'] != student.advisor_id:
            advisor = self.advisor_service.find_one_by_id(changes['advisor_id'])
            if advisor.tax_id == student.tax_id:
                raise ValidationError('Tax ID belongs to the advisor')
        if 'password' in changes:
            changes['password'] = hash_password(changes['password'])

        for field, value in changes.items():
            setattr(student, field, value)
        try:
            self.student_repo.save(student)
        except IntegrityError:
            self.session.rollback()
            raise ValidationError('Student already registered')
        _log('student_updated', student_id=student.id, fields=sorted(changes))
        return to_student_out(student)


class ArticleService:
    """Articles authored by students."""
    def __init__(self, session: Session):
        self.session = session
        self.article_repo = repositories.ArticleRepository(session)
        self.student_repo = repositories.StudentRepository(session)

    def create(self, student_id: int, payload: schemas.ArticleIn) -> schemas.ArticleOut:
        if not self.student_repo.get(student_id):
            raise NotFoundError('Student not found')
        article = models.Article(student_id=student_id, **payload.model_dump())
        return to_article_out(self.article_repo.create(article))

    def find_all(self) -> List[schemas.ArticleOut]:
        return [to_article_out(a) for a in self.article_repo.list_all()]

    def find_one_by_id(self, article_id: int) -> schemas.ArticleOut:
        article = self.article_repo.get(article_id)
        if not article:
            raise NotFoundError('Article not found')
        return to_article_out(article)

    def find_by_student(self, student_id: int) -> List[schemas.ArticleOut]:
        if not self.student_repo.get(student_id):
            raise NotFoundError('Student not found')
        return [to_article_out(a) for a in self.article_repo.list_by_student(student_id)]


class PasswordRecoveryService:
    """Issue single-use recovery tokens and redeem them for a new password."""
    def __init__(self, session: Session, sender: EmailSender):
        self.session = session
        self.sender = sender
        self.student_repo = repositories.StudentRepository(session)
        self.token_repo = repositories.RecoveryTokenRepository(session)
        self.student_service = StudentService(session)

    def request_recovery(self, email: str) -> None:
        """Send a recovery token to `email` if it belongs to a student.

        Unknown addresses are accepted silently so callers cannot probe
        which accounts exist.
        """
        student = self.student_repo.get_by_email(email)
        if not student:
            _log('password_recovery_unknown_email')
            return
        token, digest = new_recovery_token()
        ttl = settings.RECOVERY_TOKEN_TTL_MINUTES
        self.token_repo.create(models.PasswordRecoveryToken(
            student_id=student.id,
            token_hash=digest,
            expires_at=datetime.now(timezone.utc) + timedelta(minutes=ttl),
        ))
        self.sender.send(recovery_message(student.email, token, ttl))
        _log('password_recovery_requested', student_id=student.id)

    def reset_password(self, token: str, new_password: str) -> None:
        record = self.token_repo.get_by_hash(hash_recovery_token(token))
        now = datetime.now(timezone.utc)
        if not record or record.used_at is not None or _as_utc(record.expires_at) <= now:
            raise ValidationError('Invalid or expired recovery token')
        student = self.student_repo.get(record.student_id)
        if not student:
            raise ValidationError('Invalid or expired recovery token')
        # committed together with the new password hash
        if not self.token_repo.claim(record.id, now):
            self.session.rollback()
            raise ValidationError('Invalid or expired recovery token')
        self.student_service.update_password(student.email, new_password)
        _log('password_recovery_completed', student_id=student.id)


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes for values stored as UTC.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value
