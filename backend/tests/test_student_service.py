import pytest
from sqlalchemy import func
from sqlmodel import select

from scholarship_api import models, schemas, services
from scholarship_api.errors import NotFoundError, ValidationError
from scholarship_api.security import verify_password


def _count(session, model):
    return session.exec(select(func.count(model.id))).one()


@pytest.fixture
def advisor(session):
    return services.AdvisorService(session).create(schemas.AdvisorIn(name='Ada', tax_id='ADV-1'))


def _create(session, payload):
    return services.StudentService(session).create_student(schemas.StudentCreate(**payload))


def test_valid_payload_creates_one_student_and_linked_scholarship(session, advisor, student_payload):
    out = _create(session, student_payload(advisor.id))
    assert _count(session, models.Student) == 1
    assert _count(session, models.Scholarship) == 1
    scholarship = session.exec(select(models.Scholarship)).one()
    assert scholarship.student_id == out.id
    assert out.scholarship.id == scholarship.id
    stored = session.get(models.Student, out.id)
    assert stored.password != 'secret123'
    assert verify_password('secret123', stored.password)


def test_duplicate_email_writes_nothing(session, advisor, student_payload):
    first = student_payload(advisor.id)
    _create(session, first)
    with pytest.raises(ValidationError, match='Email already registered'):
        _create(session, student_payload(advisor.id, email=first['email']))
    assert _count(session, models.Student) == 1
    assert _count(session, models.Scholarship) == 1


def test_advisor_tax_id_collision_fails_before_write(session, advisor, student_payload):
    with pytest.raises(ValidationError, match='Tax ID belongs to the advisor'):
        _create(session, student_payload(advisor.id, tax_id=advisor.tax_id))
    assert _count(session, models.Student) == 0


def test_missing_advisor_propagates_not_found(session, student_payload):
    with pytest.raises(NotFoundError, match='Advisor not found'):
        _create(session, student_payload(999))


def test_inverted_window_persists_neither_row(session, advisor, student_payload):
    window = {'scholarship_starts_at': '2026-01-01', 'scholarship_ends_at': '2025-01-01'}
    with pytest.raises(ValidationError):
        _create(session, student_payload(advisor.id, scholarship=window))
    assert _count(session, models.Student) == 0
    assert _count(session, models.Scholarship) == 0


def test_storage_constraint_catches_race_past_checks(session, advisor, student_payload, monkeypatch):
    first = student_payload(advisor.id)
    _create(session, first)
    svc = services.StudentService(session)
    # simulate a concurrent registration that passed the email check
    monkeypatch.setattr(svc.student_repo, 'get_by_email', lambda email: None)
    with pytest.raises(ValidationError, match='Student already registered'):
        svc.create_student(schemas.StudentCreate(**student_payload(advisor.id, email=first['email'])))
    assert _count(session, models.Student) == 1
    assert _count(session, models.Scholarship) == 1


def test_find_by_course_is_case_insensitive_substring(session, advisor, student_payload):
    courses = ['Software Engineering', 'english literature', 'Mathematics', 'ENGINEERING physics']
    for course in courses:
        _create(session, student_payload(advisor.id, course=course))
    found = services.StudentService(session).find_by_course('eng')
    assert sorted(s.course for s in found) == sorted(['Software Engineering', 'english literature', 'ENGINEERING physics'])


def test_find_by_course_treats_wildcards_literally(session, advisor, student_payload):
    _create(session, student_payload(advisor.id, course='Physics'))
    assert services.StudentService(session).find_by_course('%') == []


def test_update_without_password_keeps_hash(session, advisor, student_payload):
    payload = student_payload(advisor.id)
    out = _create(session, payload)
    before = session.get(models.Student, out.id).password
    services.StudentService(session).update_student(schemas.StudentUpdate(tax_id=payload['tax_id'], name='New Name'))
    stored = session.get(models.Student, out.id)
    assert stored.name == 'New Name'
    assert stored.password == before


def test_update_with_password_rehashes(session, advisor, student_payload):
    payload = student_payload(advisor.id)
    out = _create(session, payload)
    before = session.get(models.Student, out.id).password
    services.StudentService(session).update_student(schemas.StudentUpdate(tax_id=payload['tax_id'], password='another-pw'))
    stored = session.get(models.Student, out.id)
    assert stored.password != before
    assert stored.password != 'another-pw'
    assert verify_password('another-pw', stored.password)


def test_update_rechecks_uniqueness_against_other_students(session, advisor, student_payload):
    a = student_payload(advisor.id)
    b = student_payload(advisor.id)
    _create(session, a)
    _create(session, b)
    svc = services.StudentService(session)
    with pytest.raises(ValidationError, match='Email already registered'):
        svc.update_student(schemas.StudentUpdate(tax_id=b['tax_id'], email=a['email']))
    with pytest.raises(ValidationError, match='Enrollment number already registered'):
        svc.update_student(schemas.StudentUpdate(tax_id=b['tax_id'], enrollment_number=a['enrollment_number']))
    # unchanged values are not conflicts with oneself
    svc.update_student(schemas.StudentUpdate(tax_id=b['tax_id'], email=b['email']))


def test_update_rejects_advisor_sharing_tax_id(session, advisor, student_payload):
    payload = student_payload(advisor.id)
    _create(session, payload)
    twin = services.AdvisorService(session).create(schemas.AdvisorIn(name='Twin', tax_id=payload['tax_id']))
    with pytest.raises(ValidationError, match='Tax ID belongs to the advisor'):
        services.StudentService(session).update_student(schemas.StudentUpdate(tax_id=payload['tax_id'], advisor_id=twin.id))


def test_update_password_unknown_email(session):
    with pytest.raises(NotFoundError):
        services.StudentService(session).update_password('ghost@example.com', 'whatever1')


def test_paginate_rejects_non_positive_page(session):
    with pytest.raises(ValidationError):
        services.StudentService(session).find_all_students_paginate(page=0, limit=5)


def test_update_unknown_tax_id_is_not_found(session):
    with pytest.raises(NotFoundError, match='Student not found'):
        services.StudentService(session).update_student(schemas.StudentUpdate(tax_id='does-not-exist', name='x'))
