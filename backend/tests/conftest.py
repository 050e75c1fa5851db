import os
import tempfile

# Settings and the engine are built at import time, so the test environment
# has to be in place before anything under app/ or database/ is imported.
_DATA_DIR = tempfile.mkdtemp(prefix="memory-finder-tests-")
os.environ["DATA_DIR"] = _DATA_DIR
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_DATA_DIR, 'test.db')}"
os.environ["STORAGE_PROVIDER"] = "local"
os.environ["EMBEDDING_PROVIDER"] = "local"
os.environ["EMBEDDING_MODEL"] = "test-model"
os.environ["OPENAI_API_KEY"] = ""
os.environ["AWS_REGION"] = ""
os.environ["MEDIACONVERT_ROLE_ARN"] = ""

from datetime import date
from typing import Dict, List

import pytest
from fastapi.testclient import TestClient

from app.main import app
from app.services.vector_service import EmbeddingResult, VectorService
from app.utils.cache import cache
from database.database import Base, SessionLocal, engine
from database.models import File, Project, User, VideoMoment

# Query text -> vector used by the fake embedding provider
QUERY_VECTORS: Dict[str, List[float]] = {
    "first dance": [1.0, 0.0, 0.0],
    "vows": [0.0, 1.0, 0.0],
    "cake": [0.0, 0.0, 1.0],
}
DEFAULT_VECTOR = [0.5, 0.5, 0.5]


@pytest.fixture(autouse=True)
def fresh_state():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    cache.clear()
    VectorService.reset()
    yield
    cache.clear()
    VectorService.reset()


@pytest.fixture
def fake_embeddings(monkeypatch):
    seen = []

    def generate_embedding(self, text):
        seen.append(text)
        return EmbeddingResult(embedding=list(QUERY_VECTORS.get(text, DEFAULT_VECTOR)), model="test-model")

    monkeypatch.setattr(VectorService, "generate_embedding", generate_embedding)
    return seen


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client():
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def login():
    def _login(test_client, email, user_type="videographer", name=None):
        response = test_client.post(
            "/api/v1/auth/session",
            json={"email": email, "userType": user_type, "name": name},
        )
        assert response.status_code == 200, response.text
        return response.json()["user"]
    return _login


def make_user(db, email="vid@example.com", user_type="videographer"):
    user = User(email=email, name=email.split("@")[0], user_type=user_type)
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def make_project(db, videographer_id, name="Smith Wedding"):
    project = Project(
        videographer_id=videographer_id,
        project_name=name,
        bride_name="Anna",
        groom_name="Ben",
        wedding_date=date(2026, 6, 20),
    )
    db.add(project)
    db.commit()
    db.refresh(project)
    return project


def make_file(db, project_id, filename="ceremony.mp4", status="uploaded"):
    file = File(
        project_id=project_id,
        filename=filename,
        s3_key=f"uploads/{project_id}/{filename}",
        s3_bucket="memory-finder-raw",
        file_type="mp4",
        status=status,
    )
    db.add(file)
    db.commit()
    db.refresh(file)
    return file


def make_moment(db, file, start, end, embedding=None, text="", content_type="speech",
                confidence=0.9, quality=0.9):
    moment = VideoMoment(
        file_id=file.id,
        project_id=file.project_id,
        start_time_seconds=start,
        end_time_seconds=end,
        content_type=content_type,
        transcript_text=text or None,
        description=text or None,
        confidence_score=confidence,
        quality_score=quality,
        embedding_data=embedding,
        embedding_model="test-model" if embedding else None,
    )
    db.add(moment)
    db.commit()
    db.refresh(moment)
    return moment
