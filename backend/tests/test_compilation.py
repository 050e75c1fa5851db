import random
from unittest.mock import MagicMock

import pytest

from app.core.config import settings
from app.services.compilation_service import select_best_moments, total_duration
from database.models import CompilationMoment, VideoCompilation
from conftest import make_file, make_moment, make_project, make_user


def moment(start, end, confidence=0.9, quality=0.9, **extra):
    return {"id": f"m-{start}", "start_time": start, "end_time": end,
            "confidence": confidence, "quality_score": quality, **extra}


def test_selection_never_exceeds_budget():
    rng = random.Random(7)
    for _ in range(200):
        moments = []
        for i in range(rng.randint(0, 25)):
            start = rng.uniform(0, 600)
            moments.append(moment(start, start + rng.uniform(0.5, 90),
                                  confidence=rng.random(), quality=rng.random()))
        budget = rng.uniform(10, 300)
        assert total_duration(select_best_moments(moments, budget)) <= budget


def test_selection_prefers_score_and_returns_chronological():
    moments = [
        moment(100, 130, confidence=0.5, quality=0.5),
        moment(0, 30, confidence=0.95, quality=0.95),
        moment(50, 80, confidence=0.9, quality=0.8),
    ]
    selected = select_best_moments(moments, max_duration=60)
    assert [m["start_time"] for m in selected] == [0, 50]


def test_selection_skips_low_quality():
    selected = select_best_moments([moment(0, 10, quality=0.2), moment(20, 30, quality=0.4)], 300)
    assert [m["start_time"] for m in selected] == [20]


def test_selection_stops_at_eighty_percent():
    moments = [moment(i * 10, i * 10 + 10, confidence=1.0 - i * 0.01) for i in range(10)]
    selected = select_best_moments(moments, max_duration=50)
    # 40 seconds reaches 80% of the budget
    assert total_duration(selected) == 40


def test_selection_ranks_missing_confidence_as_half():
    moments = [moment(0, 10, confidence=None, quality=0.9), moment(20, 30, confidence=0.4, quality=0.4)]
    ranked = select_best_moments(moments, max_duration=10)
    assert [m["start_time"] for m in ranked] == [0]


def test_selection_skips_moments_without_quality():
    moments = [moment(0, 10, quality=None), moment(20, 30, quality=0.0), moment(40, 50, quality=0.3)]
    selected = select_best_moments(moments, 300)
    assert [m["start_time"] for m in selected] == [40]


def test_create_requires_fields(client, login):
    login(client, "vid@example.com")
    response = client.post("/api/v1/compilation", json={"projectId": "p"})
    assert response.status_code == 400


def test_project_without_files_returns_null(client, login):
    user = login(client, "vid@example.com")
    project = client.post("/api/v1/projects", json={"projectName": "Empty"}).json()["project"]

    response = client.post("/api/v1/compilation", json={"searchQuery": "dance", "projectId": project["id"]})

    assert response.status_code == 200
    assert response.json()["compilation"] is None
    assert user["user_type"] == "videographer"


def test_matching_segments_are_compiled(client, login, db):
    user = login(client, "vid@example.com")
    project = make_project(db, user["id"])
    file = make_file(db, project.id)
    first = make_moment(db, file, 10, 40, text="The first dance begins", quality=0.9)
    second = make_moment(db, file, 100, 130, text="Dance floor opens", quality=0.8)
    make_moment(db, file, 200, 230, text="Cutting the cake")

    response = client.post("/api/v1/compilation",
                           json={"searchQuery": "dance", "projectId": project.id, "maxDuration": 300})

    assert response.status_code == 200
    body = response.json()
    assert body["compilation"]["status"] == "completed"
    assert body["compilation"]["momentCount"] == 2
    assert body["compilation"]["duration"] == 60
    assert body["compilation"]["streamingUrl"].startswith("file://")
    assert [m["id"] for m in body["moments"]] == [first.id, second.id]

    rows = db.query(CompilationMoment).filter_by(compilation_id=body["compilation"]["id"]).all()
    assert {row.moment_id for row in rows} == {first.id, second.id}


def test_falls_back_to_project_files(client, login, db):
    user = login(client, "vid@example.com")
    project = make_project(db, user["id"])
    make_file(db, project.id, "a.mp4")
    make_file(db, project.id, "b.mp4")

    response = client.post("/api/v1/compilation", json={"searchQuery": "sparklers", "projectId": project.id})

    body = response.json()
    assert body["compilation"]["momentCount"] == 2
    assert all(m["id"].startswith("mock-moment-") for m in body["moments"])
    assert db.query(CompilationMoment).count() == 0


def test_mediaconvert_job_is_submitted_when_configured(client, login, db, monkeypatch):
    user = login(client, "vid@example.com")
    project = make_project(db, user["id"])
    make_moment(db, make_file(db, project.id), 0, 20, text="vows")

    fake = MagicMock()
    fake.create_compilation_job.return_value = {
        "jobId": "job-123",
        "outputS3Key": "compilations/x.mp4",
        "streamingUrl": "https://example.com/x.mp4",
        "downloadUrl": "https://example.com/x.mp4",
    }
    fake.check_compilation_status.return_value = {"status": "completed", "progress": 100}
    monkeypatch.setattr(settings, "MEDIACONVERT_ROLE_ARN", "arn:aws:iam::1:role/mc")
    monkeypatch.setattr("app.services.compilation_service.MediaConvertService", lambda: fake)

    created = client.post("/api/v1/compilation", json={"searchQuery": "vows", "projectId": project.id}).json()
    compilation_id = created["compilation"]["id"]
    assert created["compilation"]["status"] == "processing"

    clips = fake.create_compilation_job.call_args[0][1]
    assert clips == [{"s3Key": f"uploads/{project.id}/ceremony.mp4", "startTime": 0, "endTime": 20}]

    status = client.get(f"/api/v1/compilation/{compilation_id}/status").json()
    assert status["status"] == "completed"
    assert status["progress"] == 100

    db.expire_all()
    assert db.get(VideoCompilation, compilation_id).status == "completed"


def test_status_checks_access(client, login, db):
    owner = login(client, "vid@example.com")
    project = make_project(db, owner["id"])
    make_moment(db, make_file(db, project.id), 0, 20, text="vows")
    compilation_id = client.post(
        "/api/v1/compilation", json={"searchQuery": "vows", "projectId": project.id}
    ).json()["compilation"]["id"]

    assert client.get("/api/v1/compilation/missing/status").status_code == 404

    login(client, "stranger@example.com")
    assert client.get(f"/api/v1/compilation/{compilation_id}/status").status_code == 403


def test_list_compilations(client, login, db):
    user = login(client, "vid@example.com")
    project = make_project(db, user["id"])
    make_moment(db, make_file(db, project.id), 0, 20, text="vows", quality=0.6)
    client.post("/api/v1/compilation", json={"searchQuery": "vows", "projectId": project.id})

    compilations = client.get(f"/api/v1/compilation?projectId={project.id}").json()["compilations"]

    assert len(compilations) == 1
    assert compilations[0]["momentCount"] == 1
    assert compilations[0]["avgQuality"] == pytest.approx(0.6)
