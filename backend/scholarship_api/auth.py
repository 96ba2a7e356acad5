"""FastAPI security dependency.

`get_current_student` validates the bearer token and returns the
corresponding `Student` model instance from the database. Token
problems are reported as HTTPException(401) so the dependency can be
used directly inside routes.
"""

from fastapi import Depends, HTTPException, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
import jwt
from sqlmodel import Session

from .database import get_session
from .security import decode_token
from . import models, repositories

bearer_scheme = HTTPBearer()


def _payload_for(token: str) -> dict:
    try:
        return decode_token(token)
    except jwt.ExpiredSignatureError:
        raise HTTPException(status_code=401, detail='token expired')
    except jwt.InvalidTokenError:
        raise HTTPException(status_code=401, detail='invalid token')


def get_current_student(
    credentials: HTTPAuthorizationCredentials = Security(bearer_scheme),
    db: Session = Depends(get_session),
) -> models.Student:
    """FastAPI dependency that returns the authenticated student."""
    payload = _payload_for(credentials.credentials)
    student_id = payload.get('student_id')
    if not student_id:
        raise HTTPException(status_code=401, detail='invalid token payload')
    student = repositories.StudentRepository(db).get(student_id)
    if not student:
        raise HTTPException(status_code=401, detail='student not found')
    return student
