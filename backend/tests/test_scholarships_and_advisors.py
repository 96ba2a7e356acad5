from fastapi.testclient import TestClient
from scholarship_api import models
from scholarship_api.main import app

client = TestClient(app)


def test_scholarship_listing_and_lookup(create_advisor, student_payload):
    advisor = create_advisor()
    student = client.post('/v1/students', json=student_payload(advisor['id'])).json()

    listed = client.get('/v1/scholarships').json()
    assert len(listed) == 1
    assert listed[0]['student']['id'] == student['id']
    assert listed[0]['student']['email'] == student['email']

    one = client.get(f"/v1/scholarships/{listed[0]['id']}")
    assert one.status_code == 200
    assert one.json()['scholarship_ends_at'] == '2026-01-31'


def test_missing_scholarship_is_not_found():
    r = client.get('/v1/scholarships/31337')
    assert r.status_code == 404
    assert r.json()['detail'] == 'Scholarship not found'


def test_standalone_create_raises_instead_of_returning_errors(create_advisor, student_payload):
    advisor = create_advisor()
    student = client.post('/v1/students', json=student_payload(advisor['id'])).json()
    window = {'scholarship_starts_at': '2027-01-01', 'scholarship_ends_at': '2027-12-31'}

    r = client.post('/v1/scholarships', json={'student_id': student['id'], **window})
    assert r.status_code == 400
    assert r.json()['detail'] == 'Student already has a scholarship'

    r = client.post('/v1/scholarships', json={'student_id': 555, **window})
    assert r.status_code == 404

    bad = {'scholarship_starts_at': '2027-12-31', 'scholarship_ends_at': '2027-01-01'}
    r = client.post('/v1/scholarships', json={'student_id': student['id'], **bad})
    assert r.status_code == 400


def test_standalone_create_for_student_without_scholarship(create_advisor, session):
    advisor = create_advisor()
    student = models.Student(
        name='Legacy', email='legacy@example.com', tax_id='LEG-1', enrollment_number='LEG-0001',
        course='History', password='x', advisor_id=advisor['id'],
    )
    session.add(student)
    session.commit()
    session.refresh(student)
    r = client.post('/v1/scholarships', json={
        'student_id': student.id,
        'scholarship_starts_at': '2025-03-01',
        'scholarship_ends_at': '2025-09-01',
    })
    assert r.status_code == 201
    assert r.json()['student_id'] == student.id
    assert r.json()['student']['name'] == 'Legacy'


def test_advisor_endpoints(create_advisor):
    a = create_advisor(tax_id='ADV-77', name='Grace')
    assert client.get(f"/v1/advisors/{a['id']}").json() == {'id': a['id'], 'name': 'Grace', 'tax_id': 'ADV-77'}
    assert [x['id'] for x in client.get('/v1/advisors').json()] == [a['id']]
    dup = client.post('/v1/advisors', json={'name': 'Other', 'tax_id': 'ADV-77'})
    assert dup.status_code == 400
    assert client.get('/v1/advisors/404').status_code == 404


def test_health_and_request_id():
    r = client.get('/health', headers={'X-Request-ID': 'abc123'})
    assert r.status_code == 200
    assert r.json() == {'status': 'ok'}
    assert r.headers['X-Request-ID'] == 'abc123'
