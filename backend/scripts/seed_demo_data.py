"""CLI script to seed an advisor and a student into the backend DB.
Usage: python scripts/seed_demo_data.py [--email EMAIL] [--password PASSWORD]
"""
import argparse
from datetime import date, timedelta
from sqlmodel import Session
from scholarship_api.database import engine, create_db_and_tables
from scholarship_api import schemas, services
from scholarship_api.errors import ServiceError

DEMO_ADVISOR_TAX_ID = '000.000.000-01'


def main(email: str, password: str):
    """Create the demo advisor (once) and a demo student with a one-year scholarship.

    Existing records are reported instead of duplicated.
    """
    create_db_and_tables()
    with Session(engine) as session:
        advisors = services.AdvisorService(session)
        advisor = advisors.advisor_repo.get_by_tax_id(DEMO_ADVISOR_TAX_ID)
        if advisor is None:
            advisor = advisors.create(schemas.AdvisorIn(name='Demo Advisor', tax_id=DEMO_ADVISOR_TAX_ID))
            print(f'Created advisor {advisor.id}')
        today = date.today()
        payload = schemas.StudentCreate(
            name='Demo Student',
            email=email,
            tax_id='000.000.000-02',
            enrollment_number='DEMO-0001',
            course='Software Engineering',
            password=password,
            advisor_id=advisor.id,
            scholarship=schemas.ScholarshipIn(
                scholarship_starts_at=today,
                scholarship_ends_at=today + timedelta(days=365),
            ),
        )
        try:
            student = services.StudentService(session).create_student(payload)
        except ServiceError as e:
            print(f'Student not created: {e.message}')
            return
        print(f'Created student {student.id} ({student.email})')


if __name__ == '__main__':
    parser = argparse.ArgumentParser()
    parser.add_argument('--email', default='demo.student@example.com')
    parser.add_argument('--password', default='demo-password')
    args = parser.parse_args()
    main(email=args.email, password=args.password)
