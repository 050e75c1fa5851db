import pytest

from database.models import SearchQuery, SearchResult
from conftest import make_file, make_moment, make_project


@pytest.fixture
def indexed_project(client, login, db, fake_embeddings):
    user = login(client, "couple@example.com", user_type="couple")
    project = make_project(db, user["id"])
    file = make_file(db, project.id)
    dance = make_moment(db, file, 30, 45, embedding=[1.0, 0.0, 0.0], text="Their first dance")
    near = make_moment(db, file, 45, 50, embedding=[0.8, 0.2, 0.0], text="Dancing with parents")
    vows = make_moment(db, file, 0, 20, embedding=[0.0, 1.0, 0.0], text="Exchanging vows")
    return project, {"dance": dance, "near": near, "vows": vows}


def test_search_requires_session(client):
    response = client.post("/api/v1/search-semantic", json={"query": "vows", "projectId": "p"})
    assert response.status_code == 401


def test_search_requires_query_and_project(client, login):
    login(client, "couple@example.com", user_type="couple")
    assert client.post("/api/v1/search-semantic", json={"projectId": "p"}).status_code == 400
    assert client.post("/api/v1/search-semantic", json={"query": "vows"}).status_code == 400


def test_search_returns_ranked_hits_and_logs_them(client, db, indexed_project):
    project, segments = indexed_project

    response = client.post("/api/v1/search-semantic", json={"query": "first dance", "projectId": project.id})

    assert response.status_code == 200
    body = response.json()
    assert body["totalResults"] == 2
    assert [r["id"] for r in body["results"]] == [segments["dance"].id, segments["near"].id]
    top = body["results"][0]
    assert top["content"] == "Their first dance"
    assert top["startTime"] == 30
    assert top["duration"] == 15
    assert top["similarity"] == pytest.approx(1.0)

    query_row = db.get(SearchQuery, body["searchQueryId"])
    assert query_row.query_text == "first dance"
    assert query_row.results_count == 2
    assert query_row.execution_time_ms is not None

    results = (
        db.query(SearchResult)
        .filter_by(search_query_id=query_row.id)
        .order_by(SearchResult.rank_position)
        .all()
    )
    assert [(r.rank_position, r.video_segment_id) for r in results] == [
        (1, segments["dance"].id),
        (2, segments["near"].id),
    ]
    assert all(r.clicked is False for r in results)


def test_repeated_search_is_served_from_cache(client, db, indexed_project, fake_embeddings):
    project, _ = indexed_project
    payload = {"query": "first dance", "projectId": project.id}

    first = client.post("/api/v1/search-semantic", json=payload).json()
    second = client.post("/api/v1/search-semantic", json=payload).json()

    assert second == {"results": first["results"]}
    assert fake_embeddings == ["first dance"]
    assert db.query(SearchQuery).count() == 1


def test_threshold_and_limit_are_honoured(client, indexed_project):
    project, segments = indexed_project

    strict = client.post("/api/v1/search-semantic",
                         json={"query": "first dance", "projectId": project.id, "similarityThreshold": 0.99})
    assert [r["id"] for r in strict.json()["results"]] == [segments["dance"].id]

    limited = client.post("/api/v1/search-semantic",
                          json={"query": "vows", "projectId": project.id, "similarityThreshold": -1, "limit": 1})
    assert [r["id"] for r in limited.json()["results"]] == [segments["vows"].id]


def test_embedding_failure_returns_500(client, login, monkeypatch):
    from app.services.vector_service import VectorService

    login(client, "couple@example.com", user_type="couple")

    def boom(self, text):
        raise RuntimeError("embedding service down")

    monkeypatch.setattr(VectorService, "generate_embedding", boom)

    response = client.post("/api/v1/search-semantic", json={"query": "vows", "projectId": "p"})

    assert response.status_code == 500
    assert response.json()["detail"] == {"error": "Search failed", "details": "embedding service down"}


def test_click_is_recorded(client, db, indexed_project):
    project, segments = indexed_project
    search = client.post("/api/v1/search-semantic", json={"query": "first dance", "projectId": project.id}).json()

    response = client.post("/api/v1/search-click",
                           json={"searchQueryId": search["searchQueryId"], "videoSegmentId": segments["dance"].id})

    assert response.status_code == 200
    row = db.query(SearchResult).filter_by(video_segment_id=segments["dance"].id).one()
    assert row.clicked is True
    assert row.clicked_at is not None


def test_search_history(client, indexed_project):
    project, _ = indexed_project
    client.post("/api/v1/search-semantic", json={"query": "vows", "projectId": project.id})
    client.post("/api/v1/search-semantic", json={"query": "cake", "projectId": project.id})

    recent = client.get(f"/api/v1/search-semantic?projectId={project.id}&limit=10").json()["recentQueries"]

    assert {q["query_text"] for q in recent} == {"vows", "cake"}
    assert client.get("/api/v1/search-semantic").status_code == 400
