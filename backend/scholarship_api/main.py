"""FastAPI application entrypoint and HTTP controllers.

This module defines the HTTP endpoints of the scholarship administration
backend. Controllers are intentionally thin: they accept requests,
delegate to services, and return JSON responses. Service errors are
mapped to status codes by the exception handlers below.

Endpoints implemented:
- GET /health
- POST /v1/auth/login
- GET /v1/profile
- POST /v1/password-recovery/request
- POST /v1/password-recovery/reset
- POST/GET /v1/advisors, GET /v1/advisors/{id}
- POST/GET/PATCH /v1/students and its lookups
- POST/GET /v1/scholarships, GET /v1/scholarships/{id}
- POST/GET /v1/articles, GET /v1/articles/{id}
"""

from typing import List

from fastapi import FastAPI, Depends, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from sqlmodel import Session
import json
import logging
import time
import uuid

from .database import create_db_and_tables, get_session
from . import services, models, schemas
from .auth import get_current_student
from .config import settings
from .errors import ServiceError
from .notifications import EmailSender, get_email_sender
from .utils.rate_limit import SlidingWindowLimiter

app = FastAPI(title="Student Scholarship Administration API")
logger = logging.getLogger("scholarship_api.api")
if not logger.handlers:
    logging.basicConfig(level=settings.LOG_LEVEL)
_recovery_limiter = SlidingWindowLimiter(
    max_requests=settings.RECOVERY_RATE_LIMIT,
    window_seconds=settings.RECOVERY_RATE_WINDOW_SECONDS,
)

if settings.ALLOW_DEV_CORS:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

create_db_and_tables()


@app.middleware("http")
async def request_context_middleware(request: Request, call_next):
    req_id = request.headers.get("X-Request-ID", uuid.uuid4().hex)
    request.state.request_id = req_id
    started = time.perf_counter()
    response: Response
    context = {
        "request_id": req_id,
        "path": request.url.path,
        "method": request.method,
        "client": request.client.host if request.client else "unknown",
    }
    try:
        response = await call_next(request)
    except Exception:
        context["duration_ms"] = round((time.perf_counter() - started) * 1000.0, 2)
        logger.exception("request_failed %s", json.dumps(context, ensure_ascii=True))
        raise
    response.headers["X-Request-ID"] = req_id
    context["status_code"] = response.status_code
    context["duration_ms"] = round((time.perf_counter() - started) * 1000.0, 2)
    logger.info("request_done %s", json.dumps(context, ensure_ascii=True))
    return response


@app.exception_handler(ServiceError)
async def service_error_handler(request: Request, exc: ServiceError):
    """Map validation and not-found failures raised by services."""
    logger.info("service_error %s", json.dumps({
        "path": request.url.path,
        "status_code": exc.status_code,
        "detail": exc.message,
    }, ensure_ascii=True))
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


@app.get("/health")
def health():
    return {"status": "ok"}


@app.post('/v1/auth/login', response_model=schemas.TokenOut)
def login(payload: schemas.LoginIn, db: Session = Depends(get_session)):
    """Authenticate a student and return a short-lived JWT token.

    The returned token contains `student_id` and `email` and is signed
    using the configured JWT secret.
    """
    token = services.AuthService(db).authenticate(payload.email, payload.password)
    if not token:
        raise HTTPException(status_code=401, detail='invalid credentials')
    return {'access_token': token, 'token_type': 'bearer'}


@app.get('/v1/profile', response_model=schemas.StudentOut)
def profile(student: models.Student = Depends(get_current_student), db: Session = Depends(get_session)):
    """Return the authenticated student's record."""
    return services.StudentService(db).find_by_id(student.id)


@app.post('/v1/password-recovery/request', status_code=202)
def request_password_recovery(
    payload: schemas.PasswordRecoveryRequestIn,
    request: Request,
    db: Session = Depends(get_session),
    sender: EmailSender = Depends(get_email_sender),
):
    """Start password recovery for `email`.

    The response is identical whether or not the address is registered.
    Requests are rate limited per client and address.
    """
    client = request.client.host if request.client else 'unknown'
    allowed, retry_after = _recovery_limiter.hit(f"{client}:{payload.email.lower()}")
    if not allowed:
        raise HTTPException(
            status_code=429,
            detail=f"rate limit exceeded; retry after {retry_after}s",
            headers={"Retry-After": str(retry_after)},
        )
    services.PasswordRecoveryService(db, sender).request_recovery(payload.email)
    return {'status': 'accepted', 'message': 'If the address is registered, a recovery e-mail has been sent'}


@app.post('/v1/password-recovery/reset')
def reset_password(
    payload: schemas.PasswordResetIn,
    db: Session = Depends(get_session),
    sender: EmailSender = Depends(get_email_sender),
):
    services.PasswordRecoveryService(db, sender).reset_password(payload.token, payload.new_password)
    return {'status': 'ok'}


@app.post('/v1/advisors', status_code=201, response_model=schemas.AdvisorOut)
def create_advisor(payload: schemas.AdvisorIn, db: Session = Depends(get_session)):
    advisor = services.AdvisorService(db).create(payload)
    return services.to_advisor_out(advisor)


@app.get('/v1/advisors', response_model=List[schemas.AdvisorOut])
def list_advisors(db: Session = Depends(get_session)):
    return [services.to_advisor_out(a) for a in services.AdvisorService(db).find_all()]


@app.get('/v1/advisors/{advisor_id}', response_model=schemas.AdvisorOut)
def get_advisor(advisor_id: int, db: Session = Depends(get_session)):
    return services.to_advisor_out(services.AdvisorService(db).find_one_by_id(advisor_id))


@app.post('/v1/students', status_code=201, response_model=schemas.StudentOut)
def create_student(payload: schemas.StudentCreate, db: Session = Depends(get_session)):
    """Register a student together with its scholarship window.

    Rejects duplicate email, tax id or enrollment number, a tax id equal
    to the advisor's, and empty scholarship windows (400). An unknown
    advisor yields 404.
    """
    return services.StudentService(db).create_student(payload)


@app.get('/v1/students', response_model=List[schemas.StudentOut])
def list_students(db: Session = Depends(get_session)):
    return services.StudentService(db).find_all_students()


@app.get('/v1/students/paginate', response_model=schemas.StudentPage)
def paginate_students(
    page: int = Query(1, ge=1),
    limit: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, description='capped at MAX_PAGE_SIZE'),
    db: Session = Depends(get_session),
):
    return services.StudentService(db).find_all_students_paginate(page=page, limit=limit)


@app.get('/v1/students/course/{course}', response_model=List[schemas.StudentOut])
def students_by_course(course: str, db: Session = Depends(get_session)):
    """Students whose course contains `course`, case-insensitively."""
    return services.StudentService(db).find_by_course(course)


@app.get('/v1/students/email/{email}', response_model=schemas.StudentOut)
def student_by_email(email: str, db: Session = Depends(get_session)):
    return services.StudentService(db).find_by_email(email)


@app.get('/v1/students/advisor/{advisor_id}', response_model=List[schemas.StudentOut])
def students_by_advisor(advisor_id: int, db: Session = Depends(get_session)):
    return services.StudentService(db).find_by_advisor_id(advisor_id)


@app.get('/v1/students/{student_id}', response_model=schemas.StudentOut)
def get_student(student_id: int, db: Session = Depends(get_session)):
    return services.StudentService(db).find_by_id(student_id)


@app.get('/v1/students/{student_id}/articles', response_model=List[schemas.ArticleOut])
def student_articles(student_id: int, db: Session = Depends(get_session)):
    return services.ArticleService(db).find_by_student(student_id)


@app.patch('/v1/students', response_model=schemas.StudentOut)
def update_student(
    payload: schemas.StudentUpdate,
    db: Session = Depends(get_session),
    student: models.Student = Depends(get_current_student),
):
    """Partially update the authenticated student's own record.

    `tax_id` identifies the record and must be the caller's own.
    """
    if payload.tax_id != student.tax_id:
        raise HTTPException(status_code=403, detail='students may only update their own record')
    return services.StudentService(db).update_student(payload)


@app.post('/v1/scholarships', status_code=201, response_model=schemas.ScholarshipOut)
def create_scholarship(payload: schemas.ScholarshipCreate, db: Session = Depends(get_session)):
    svc = services.ScholarshipService(db)
    scholarship = svc.create(payload, payload.student_id)
    return services.to_scholarship_out(scholarship)


@app.get('/v1/scholarships', response_model=List[schemas.ScholarshipOut])
def list_scholarships(db: Session = Depends(get_session)):
    return services.ScholarshipService(db).find_all()


@app.get('/v1/scholarships/{scholarship_id}', response_model=schemas.ScholarshipOut)
def get_scholarship(scholarship_id: int, db: Session = Depends(get_session)):
    return services.ScholarshipService(db).find_one_by_id(scholarship_id)


@app.post('/v1/articles', status_code=201, response_model=schemas.ArticleOut)
def create_article(
    payload: schemas.ArticleIn,
    db: Session = Depends(get_session),
    student: models.Student = Depends(get_current_student),
):
    """Publish an article authored by the authenticated student."""
    return services.ArticleService(db).create(student.id, payload)


@app.get('/v1/articles', response_model=List[schemas.ArticleOut])
def list_articles(db: Session = Depends(get_session)):
    return services.ArticleService(db).find_all()


@app.get('/v1/articles/{article_id}', response_model=schemas.ArticleOut)
def get_article(article_id: int, db: Session = Depends(get_session)):
    return services.ArticleService(db).find_one_by_id(article_id)
