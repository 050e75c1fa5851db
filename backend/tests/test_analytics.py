from datetime import timedelta

from database.models import SearchQuery, SearchResult, utcnow
from conftest import make_file, make_moment, make_project


def test_videographer_analytics(client, login, db):
    user = login(client, "vid@example.com")
    project = make_project(db, user["id"])
    make_file(db, project.id, "a.mp4", status="completed")
    make_file(db, project.id, "b.mp4")
    db.add_all([
        SearchQuery(project_id=project.id, user_id=user["id"], query_text="vows", execution_time_ms=10),
        SearchQuery(project_id=project.id, user_id=user["id"], query_text="vows", execution_time_ms=30),
        SearchQuery(project_id=project.id, user_id=user["id"], query_text="cake", execution_time_ms=20),
        SearchQuery(project_id=project.id, user_id=user["id"], query_text="old",
                    created_at=utcnow() - timedelta(days=45)),
    ])
    db.commit()

    body = client.get("/api/v1/analytics").json()

    assert body["userType"] == "videographer"
    assert body["projectStats"] == {"total_projects": 1, "active_projects": 1, "shared_projects": 0}
    assert body["fileStats"]["total_files"] == 2
    assert body["fileStats"]["processed_files"] == 1
    assert body["searchStats"]["total_searches"] == 3
    assert body["searchStats"]["unique_searchers"] == 1
    assert body["popularQueries"][0] == {"query_text": "vows", "search_count": 2, "avg_time_ms": 20.0}
    assert {a["activity_type"] for a in body["recentActivity"]} == {"project_created", "file_uploaded"}


def test_couple_analytics(client, login, db):
    owner = login(client, "vid@example.com")
    project = make_project(db, owner["id"])
    file = make_file(db, project.id)
    moment = make_moment(db, file, 0, 10, text="vows")

    couple = login(client, "anna@example.com", user_type="couple")
    project.couple_id = couple["id"]
    query = SearchQuery(project_id=project.id, user_id=couple["id"], query_text="vows", execution_time_ms=12)
    db.add(query)
    db.flush()
    db.add(SearchResult(search_query_id=query.id, video_segment_id=moment.id, rank_position=2,
                        relevance_score=0.9, clicked=True, clicked_at=utcnow()))
    db.commit()

    body = client.get("/api/v1/analytics").json()

    assert body["userType"] == "couple"
    assert body["projectStats"]["total_projects"] == 1
    assert body["searchStats"]["projects_searched"] == 1
    assert body["clickStats"] == {"total_clicks": 1, "unique_moments_clicked": 1, "avg_result_rank_clicked": 2.0}
    assert body["recentSearches"][0]["query_text"] == "vows"
    assert body["recentSearches"][0]["results_found"] == 1


def test_analytics_requires_session(client):
    assert client.get("/api/v1/analytics").status_code == 401


def test_health(client):
    assert client.get("/api/v1/health").json()["status"] == "ok"
    assert client.get("/").json()["status"] == "ok"
