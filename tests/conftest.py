import os
import uuid

os.environ.setdefault("SUPABASE_URL", "https://project.supabase.co")
os.environ.setdefault("SUPABASE_SERVICE_ROLE_KEY", "service-role-key")
os.environ.setdefault("SUPABASE_JWT_SECRET", "test-jwt-secret")
os.environ.setdefault("STRIPE_SECRET_KEY", "sk_test_123")
os.environ.setdefault("STRIPE_WEBHOOK_SECRET", "whsec_test")
os.environ.setdefault("REGION", "us-east-2")
os.environ.setdefault("BUCKET_NAME", "va-docs")
os.environ.setdefault("RAG_AGENT_API_KEY", "rag-key")
os.environ["DB_URL"] = "sqlite+pysqlite:///:memory:"

import pytest
from fastapi.testclient import TestClient

import varating.database.entities  # noqa: F401
from varating.api.utils import create_access_token
from varating.database.config.config import settings
from varating.database.config.connection_engine import connection_engine, metadata
from varating.database.entities.profile import Profile
from varating.database.helpers.transactionManagement import SessionFactory
from varating.main import app

metadata.create_all(connection_engine)


@pytest.fixture(autouse=True)
def clean_tables():
    yield
    with connection_engine.begin() as conn:
        for table in reversed(metadata.sorted_tables):
            conn.execute(table.delete())


@pytest.fixture
def client():
    return TestClient(app)


@pytest.fixture
def db():
    session = SessionFactory()
    try:
        yield session
    finally:
        session.close()


def make_token(user_id, email="vet@example.com", role="authenticated"):
    return create_access_token({"sub": str(user_id), "email": email, "role": role, "aud": settings.JWT_AUDIENCE})


@pytest.fixture
def user_id():
    return uuid.uuid4()


@pytest.fixture
def auth_headers(user_id):
    return {"Authorization": f"Bearer {make_token(user_id)}"}


@pytest.fixture
def service_headers():
    return {"Authorization": f"Bearer {settings.SUPABASE_SERVICE_ROLE_KEY}"}


@pytest.fixture
def profile(db, user_id):
    row = Profile(id=user_id, email="vet@example.com", full_name="Jane Vet", role="veteran")
    db.add(row)
    db.commit()
    return row
