"""Repository classes encapsulating database operations.

Each repository is small and focused on a single aggregate (advisors,
students, scholarships, articles, recovery tokens). Repositories return
SQLModel objects. Methods named `create`/`save` commit; `add` only
flushes so a service can group several writes into one transaction.
"""

from datetime import datetime
from typing import List, Optional
from sqlmodel import Session, select, col
from sqlalchemy import func, update
from sqlalchemy.orm import selectinload
from . import models


def _contains_pattern(text: str) -> str:
    """Build a LIKE pattern matching `text` literally anywhere in a column."""
    escaped = text.replace('\\', '\\\\').replace('%', '\\%').replace('_', '\\_')
    return f"%{escaped}%"


class AdvisorRepository:
    """CRUD operations for `Advisor` objects."""
    def __init__(self, session: Session):
        self.session = session

    def create(self, advisor: models.Advisor) -> models.Advisor:
        """Persist a new advisor and return the managed instance."""
        self.session.add(advisor)
        self.session.commit()
        self.session.refresh(advisor)
        return advisor

    def get(self, advisor_id: int) -> Optional[models.Advisor]:
        return self.session.get(models.Advisor, advisor_id)

    def get_by_tax_id(self, tax_id: str) -> Optional[models.Advisor]:
        stmt = select(models.Advisor).where(models.Advisor.tax_id == tax_id)
        return self.session.exec(stmt).first()

    def list_all(self) -> List[models.Advisor]:
        stmt = select(models.Advisor).order_by(models.Advisor.id)
        return self.session.exec(stmt).all()


class StudentRepository:
    """Queries and writes for `Student` rows.

    List queries eagerly load articles and the scholarship since every
    response shape includes them.
    """
    def __init__(self, session: Session):
        self.session = session

    def _with_relations(self):
        return select(models.Student).options(
            selectinload(models.Student.articles),
            selectinload(models.Student.scholarship),
        )

    def add(self, student: models.Student) -> models.Student:
        """Stage a new student and flush so its primary key is assigned."""
        self.session.add(student)
        self.session.flush()
        return student

    def save(self, student: models.Student) -> models.Student:
        """Commit pending changes on `student` and reload it."""
        self.session.add(student)
        self.session.commit()
        self.session.refresh(student)
        return student

    def get(self, student_id: int) -> Optional[models.Student]:
        """Get a `Student` by primary key."""
        return self.session.get(models.Student, student_id)

    def get_by_email(self, email: str) -> Optional[models.Student]:
        stmt = select(models.Student).where(models.Student.email == email)
        return self.session.exec(stmt).first()

    def get_by_tax_id(self, tax_id: str) -> Optional[models.Student]:
        stmt = select(models.Student).where(models.Student.tax_id == tax_id)
        return self.session.exec(stmt).first()

    def get_by_enrollment_number(self, enrollment_number: str) -> Optional[models.Student]:
        stmt = select(models.Student).where(models.Student.enrollment_number == enrollment_number)
        return self.session.exec(stmt).first()

    def list_all(self, offset: int = 0, limit: Optional[int] = None) -> List[models.Student]:
        """Return students ordered by id, optionally windowed."""
        stmt = self._with_relations().order_by(models.Student.id).offset(offset)
        if limit is not None:
            stmt = stmt.limit(limit)
        return self.session.exec(stmt).all()

    def count(self) -> int:
        stmt = select(func.count(models.Student.id))
        return self.session.exec(stmt).one()

    def list_by_course(self, course: str) -> List[models.Student]:
        """Return students whose course contains `course`, ignoring case."""
        stmt = (
            self._with_relations()
            .where(col(models.Student.course).ilike(_contains_pattern(course), escape='\\'))
            .order_by(models.Student.id)
        )
        return self.session.exec(stmt).all()

    def list_by_advisor(self, advisor_id: int) -> List[models.Student]:
        stmt = (
            self._with_relations()
            .where(models.Student.advisor_id == advisor_id)
            .order_by(models.Student.id)
        )
        return self.session.exec(stmt).all()


class ScholarshipRepository:
    """Persistence for `Scholarship` rows."""
    def __init__(self, session: Session):
        self.session = session

    def add(self, scholarship: models.Scholarship, commit: bool = True) -> models.Scholarship:
        """Store a scholarship; with `commit=False` the row is only flushed."""
        self.session.add(scholarship)
        if commit:
            self.session.commit()
            self.session.refresh(scholarship)
        else:
            self.session.flush()
        return scholarship

    def get(self, scholarship_id: int) -> Optional[models.Scholarship]:
        stmt = (
            select(models.Scholarship)
            .options(selectinload(models.Scholarship.student))
            .where(models.Scholarship.id == scholarship_id)
        )
        return self.session.exec(stmt).first()

    def get_by_student(self, student_id: int) -> Optional[models.Scholarship]:
        stmt = select(models.Scholarship).where(models.Scholarship.student_id == student_id)
        return self.session.exec(stmt).first()

    def list_all(self) -> List[models.Scholarship]:
        stmt = (
            select(models.Scholarship)
            .options(selectinload(models.Scholarship.student))
            .order_by(models.Scholarship.id)
        )
        return self.session.exec(stmt).all()


class ArticleRepository:
    """CRUD operations for `Article` records."""
    def __init__(self, session: Session):
        self.session = session

    def create(self, article: models.Article) -> models.Article:
        self.session.add(article)
        self.session.commit()
        self.session.refresh(article)
        return article

    def get(self, article_id: int) -> Optional[models.Article]:
        return self.session.get(models.Article, article_id)

    def list_all(self) -> List[models.Article]:
        stmt = select(models.Article).order_by(models.Article.id)
        return self.session.exec(stmt).all()

    def list_by_student(self, student_id: int) -> List[models.Article]:
        stmt = select(models.Article).where(models.Article.student_id == student_id).order_by(models.Article.id)
        return self.session.exec(stmt).all()


class RecoveryTokenRepository:
    """Store and look up password recovery tokens by digest."""
    def __init__(self, session: Session):
        self.session = session

    def create(self, token: models.PasswordRecoveryToken) -> models.PasswordRecoveryToken:
        self.session.add(token)
        self.session.commit()
        self.session.refresh(token)
        return token

    def get_by_hash(self, token_hash: str) -> Optional[models.PasswordRecoveryToken]:
        stmt = select(models.PasswordRecoveryToken).where(models.PasswordRecoveryToken.token_hash == token_hash)
        return self.session.exec(stmt).first()

    def claim(self, token_id: int, used_at: datetime) -> bool:
        """Mark an unused token as used; False when another caller got there first.

        The flag is set with a conditional UPDATE so only one redemption
        wins. The change is left uncommitted for the caller.
        """
        stmt = (
            update(models.PasswordRecoveryToken)
            .where(
                models.PasswordRecoveryToken.id == token_id,
                col(models.PasswordRecoveryToken.used_at).is_(None),
            )
            .values(used_at=used_at)
        )
        return self.session.exec(stmt).rowcount == 1
