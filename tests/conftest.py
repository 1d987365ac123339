import os
import tempfile

# configure the app before any project module reads config
_DB_DIR = tempfile.mkdtemp(prefix="portfolio-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_DB_DIR, 'test.db')}"
os.environ["REVALIDATION_SECRET"] = "test-secret"
os.environ["REVALIDATION_WEBHOOK_URL"] = ""
os.environ["OPENROUTER_API_KEY"] = ""
os.environ["CHAT_RATE_LIMIT"] = "1000/minute"

import pytest
from fastapi.testclient import TestClient

import models  # noqa: F401
from auth import create_access_token, seed_admin
from database import Base, SessionLocal, engine
from revalidation import page_cache


@pytest.fixture
def db():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    page_cache.clear()
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client(db):
    from main import app

    return TestClient(app)


@pytest.fixture
def admin_client(client, db):
    admin = seed_admin(db)
    token = create_access_token({"sub": admin.username, "role": "admin"})
    client.headers.update({"Authorization": f"Bearer {token}"})
    return client


def project_payload(**overrides):
    payload = {
        "title": "Alpha Rover",
        "slug": "alpha-rover",
        "description": "A small planetary rover.",
        "completion": 50,
        "priority": "high",
        "category": "Robotics",
        "status": "in-progress",
        "start_date": "2024-03-01",
        "technologies": ["Python", "ROS"],
        "milestones": [
            {"description": "Chassis", "due_date": "2024-04-01", "completed": True},
            {"description": "Navigation"},
        ],
    }
    payload.update(overrides)
    return payload
