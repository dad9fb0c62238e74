import copy
import json
import os
import asyncio
from contextlib import contextmanager

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

# Set env before importing app components
os.environ["APP_ENV"] = "testing"
os.environ["DATABASE_URL"] = "sqlite:///:memory:"

from resume_optimizer.core import prompts
from resume_optimizer.core.schemas import Malformed, Ok
from resume_optimizer.database import Base, get_db, get_session_scope
from resume_optimizer.dependencies import get_ai_orchestrator
from resume_optimizer.main import app
from fastapi.testclient import TestClient

# SQLite in-memory database configuration
SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"

engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


RESUME_TEXT = """John Doe
Software Engineer
john.doe@example.com | (555) 123-4567 | Austin, TX

SUMMARY
Backend engineer with 6 years of experience building APIs in Python and Go.

EXPERIENCE
Software Engineer, Initech (2019 - 2024)
- Built REST services handling 2M requests per day
- Migrated deployments to Kubernetes

EDUCATION
B.S. Computer Science, University of Texas (2018)
"""

OPTIMIZED_TEXT = """JOHN DOE
john.doe@example.com | (555) 123-4567 | Austin, TX

PROFESSIONAL SUMMARY
Senior backend engineer with 6 years of experience building Go and Python microservices on Kubernetes.

SKILLS
Go, Kubernetes, Python, REST APIs

PROFESSIONAL EXPERIENCE
Software Engineer, Initech (2019 - 2024)
- Built Go and Python REST microservices handling 2M requests per day
- Migrated service deployments to Kubernetes

EDUCATION
B.S. Computer Science, University of Texas (2018)"""

JOB_DESCRIPTION = (
    "Acme Cloud is hiring a Senior Backend Engineer to design Go microservices, "
    "run them on Kubernetes and mentor a small platform team. Remote friendly."
)

PARSED_RESUME = {
    "contactInfo": {
        "fullName": "John Doe",
        "email": "john.doe@example.com",
        "phone": "(555) 123-4567",
        "location": {"city": "Austin", "state": "TX"},
    },
    "professionalSummary": "Backend engineer with 6 years of experience building APIs in Python and Go.",
    "skills": ["Python", "Go", "Kubernetes"],
    "experience": [
        {
            "title": "Software Engineer",
            "company": "Initech",
            "startDate": "2019",
            "endDate": "2024",
            "achievements": ["Built REST services handling 2M requests per day"],
        }
    ],
    "education": [{"degree": "B.S. Computer Science", "institution": "University of Texas", "graduationDate": "2018"}],
}

SCORE_BEFORE = {
    "overall": 61, "keywords": 55, "skills": 60, "experience": 70,
    "education": 80, "personalization": 40, "aiReadiness": 50,
    "analysis": {"strengths": ["Go experience"], "gaps": ["No Kubernetes detail"], "suggestions": ["Quantify impact"]},
}

SCORE_AFTER = {
    "overall": 88, "keywords": 90, "skills": 85, "experience": 80,
    "education": 80, "personalization": 75, "aiReadiness": 92,
    "analysis": {"strengths": ["Strong keyword coverage"], "gaps": [], "suggestions": ["Add certifications"]},
}


def _score(user_content):
    return SCORE_AFTER if "PROFESSIONAL SUMMARY" in user_content else SCORE_BEFORE


DEFAULT_RESPONSES = {
    "job_details": {
        "title": "Senior Backend Engineer",
        "company": "Acme Cloud",
        "location": "Remote",
        "salary": None,
        "positionLevel": "senior",
        "keyRequirements": ["5+ years building backend services in Go", "Kubernetes"],
        "skillsAndTools": ["Go", "Kubernetes", "Distributed systems design patterns"],
    },
    "job_analysis": {
        "skills": ["Go", "Kubernetes"],
        "experienceLevel": "Senior",
        "responsibilities": ["Design microservices", "Mentor engineers"],
        "primaryRequirements": ["Go", "Kubernetes"],
        "secondaryRequirements": ["Team leadership"],
        "keyTerminology": ["microservices", "platform"],
    },
    "resume_parse": PARSED_RESUME,
    "optimize": {
        "optimizedContent": OPTIMIZED_TEXT,
        "changes": ["Rewrote summary around Go and Kubernetes", "Added skills section"],
        "resumeContent": PARSED_RESUME,
        "analysis": {"strengths": [], "improvements": ["Keyword alignment"], "gaps": [], "suggestions": []},
    },
    "score": _score,
    "cover_letter": {
        "coverLetter": "Dear Hiring Manager,\n\nI am excited to apply for the Senior Backend Engineer role at Acme Cloud.",
        "highlights": ["Go microservices", "Kubernetes migrations"],
        "confidence": 82,
    },
}

PROMPT_NAMES = {
    prompts.JOB_DETAILS_SYSTEM: "job_details",
    prompts.JOB_ANALYSIS_SYSTEM: "job_analysis",
    prompts.RESUME_PARSE_SYSTEM: "resume_parse",
    prompts.RESUME_OPTIMIZE_SYSTEM: "optimize",
    prompts.MATCH_SCORE_SYSTEM: "score",
    prompts.COVER_LETTER_SYSTEM: "cover_letter",
}


class FakeAI:
    """
    Stands in for the generation client. Responses are keyed by prompt name;
    queued failures are raised before any response is returned.
    """

    def __init__(self, responses=None):
        self.responses = {**DEFAULT_RESPONSES, **(responses or {})}
        self.failures = {}
        self.delays = {}
        self.calls = []

    def fail(self, name, *errors):
        self.failures.setdefault(name, []).extend(errors)

    def count(self, name):
        return self.calls.count(name)

    async def generate_structured(self, system_prompt, user_content, temperature=None):
        name = PROMPT_NAMES[system_prompt]
        self.calls.append(name)
        if self.delays.get(name):
            await asyncio.sleep(self.delays[name])
        if self.failures.get(name):
            raise self.failures[name].pop(0)
        value = self.responses[name]
        if callable(value):
            value = value(user_content)
        if isinstance(value, (Ok, Malformed)):
            return value
        return Ok(copy.deepcopy(value))


def sse_events(response):
    """Decode the data frames of a server-sent event stream."""
    return [
        json.loads(line[len("data: "):])
        for line in response.text.splitlines()
        if line.startswith("data: ")
    ]


async def collect(channel):
    return [event async for event in channel.events()]


@pytest.fixture(scope="session", autouse=True)
def setup_database():
    """Create tables once for the whole test session."""
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def db_session():
    """Get a clean database session for each test function with rollback safety."""
    connection = engine.connect()
    transaction = connection.begin()
    session = TestingSessionLocal(bind=connection)

    yield session

    session.close()
    transaction.rollback()
    connection.close()


@pytest.fixture(scope="function")
def user(db_session):
    from resume_optimizer.models.user import User

    user = User(email="john.doe@example.com", full_name="John Doe", is_active=True)
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture(scope="function")
def other_user(db_session):
    from resume_optimizer.models.user import User

    user = User(email="mallory@example.com", full_name="Mallory Smith", is_active=True)
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture(scope="function")
def get_token():
    """Helper fixture to create access tokens for a user."""
    from resume_optimizer.services.auth import create_access_token

    def _get_token(user):
        return create_access_token(data={"sub": user.email, "type": "access"})
    return _get_token


@pytest.fixture(scope="function")
def auth_headers(user, get_token):
    return {"Authorization": f"Bearer {get_token(user)}"}


@pytest.fixture(scope="function")
def uploaded_resume(db_session, user):
    from resume_optimizer.models import UploadedResume

    row = UploadedResume(
        user_id=user.id,
        content=RESUME_TEXT,
        metadata_={"filename": "john_doe.txt", "fileType": "text/plain", "uploadedAt": "2026-01-05T10:00:00+00:00"},
    )
    db_session.add(row)
    db_session.commit()
    return row


@pytest.fixture(scope="function")
def make_optimized_resume(db_session):
    """Insert an optimized resume row directly, bypassing the pipeline."""
    from resume_optimizer.models import OptimizedResume

    def _make(owner, uploaded_resume_id=999, version="1.0", content=OPTIMIZED_TEXT):
        row = OptimizedResume(
            user_id=owner.id,
            uploaded_resume_id=uploaded_resume_id,
            session_id=f"session-{version}",
            content=content,
            original_content=RESUME_TEXT,
            job_description=JOB_DESCRIPTION,
            job_url=None,
            job_details={"title": "Senior Backend Engineer", "company": "Acme Cloud", "description": JOB_DESCRIPTION},
            metrics={"before": SCORE_BEFORE, "after": SCORE_AFTER},
            analysis={"strengths": ["Go"], "improvements": [], "gaps": [], "suggestions": []},
            changes=["Rewrote summary"],
            resume_content=PARSED_RESUME,
            contact_info=PARSED_RESUME["contactInfo"],
            metadata_={"filename": "JD_Senior_Backend_Engineer.pdf", "optimizedAt": "2026-01-05T10:05:00+00:00", "version": version},
            version=version,
            version_history=[],
        )
        db_session.add(row)
        db_session.commit()
        return row
    return _make


@pytest.fixture(scope="function")
def fake_ai():
    return FakeAI()


@pytest.fixture(scope="function")
def client(db_session, fake_ai):
    """Get a TestClient that uses the test database session and the fake generation client."""
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    @contextmanager
    def test_session_scope():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_scope] = lambda: test_session_scope
    app.dependency_overrides[get_ai_orchestrator] = lambda: fake_ai
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()
