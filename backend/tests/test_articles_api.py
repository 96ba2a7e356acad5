from fastapi.testclient import TestClient
from scholarship_api.main import app

client = TestClient(app)


def _register_and_login(create_advisor, student_payload):
    advisor = create_advisor()
    payload = student_payload(advisor['id'])
    student = client.post('/v1/students', json=payload).json()
    r = client.post('/v1/auth/login', json={'email': payload['email'], 'password': payload['password']})
    return student, {'Authorization': f"Bearer {r.json()['access_token']}"}


def test_publish_article_and_read_back(create_advisor, student_payload):
    student, headers = _register_and_login(create_advisor, student_payload)
    r = client.post('/v1/articles', json={
        'title': 'Sparse attention on a budget',
        'abstract': 'We look at cheap attention variants.',
        'published_at': '2025-05-04',
    }, headers=headers)
    assert r.status_code == 201
    article = r.json()
    assert article['student_id'] == student['id']
    assert article['published_at'] == '2025-05-04'

    assert client.get(f"/v1/articles/{article['id']}").json()['title'] == 'Sparse attention on a budget'
    assert [a['id'] for a in client.get('/v1/articles').json()] == [article['id']]
    assert [a['id'] for a in client.get(f"/v1/students/{student['id']}/articles").json()] == [article['id']]
    # articles are part of the student response shape
    assert client.get(f"/v1/students/{student['id']}").json()['articles'][0]['id'] == article['id']


def test_publish_requires_token():
    r = client.post('/v1/articles', json={'title': 'Anonymous'})
    assert r.status_code in (401, 403)


def test_missing_article_and_student_articles():
    assert client.get('/v1/articles/9').status_code == 404
    assert client.get('/v1/students/9/articles').status_code == 404
