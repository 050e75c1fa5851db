from database.models import File, Project, VideoMoment
from conftest import make_file, make_moment


def create_project(client, name="Smith Wedding", **fields):
    response = client.post("/api/v1/projects", json={"projectName": name, **fields})
    assert response.status_code == 201, response.text
    return response.json()["project"]


def test_projects_require_session(client):
    assert client.get("/api/v1/projects").status_code == 401


def test_create_and_list_with_file_counts(client, login, db):
    user = login(client, "vid@example.com")
    project = create_project(client, brideName="Anna", groomName="Ben", weddingDate="2026-06-20")
    assert project["videographer_id"] == user["id"]
    assert project["wedding_date"] == "2026-06-20"

    make_file(db, project["id"], "a.mp4", status="completed")
    make_file(db, project["id"], "b.mp4")

    projects = client.get("/api/v1/projects").json()["projects"]

    assert len(projects) == 1
    assert projects[0]["file_count"] == 2
    assert projects[0]["processed_files"] == 1


def test_create_requires_name(client, login):
    login(client, "vid@example.com")
    assert client.post("/api/v1/projects", json={"brideName": "Anna"}).status_code == 400


def test_update_project(client, login):
    login(client, "vid@example.com")
    project = create_project(client)

    response = client.put(f"/api/v1/projects/{project['id']}",
                          json={"projectName": "Renamed", "description": "Garden ceremony"})

    assert response.status_code == 200
    assert response.json()["project"]["project_name"] == "Renamed"
    assert response.json()["project"]["description"] == "Garden ceremony"


def test_update_and_delete_check_ownership(client, login):
    login(client, "vid@example.com")
    project = create_project(client)

    assert client.put("/api/v1/projects/unknown", json={"projectName": "x"}).status_code == 404
    assert client.delete("/api/v1/projects/unknown").status_code == 404

    login(client, "other@example.com")
    assert client.put(f"/api/v1/projects/{project['id']}", json={"projectName": "x"}).status_code == 403
    assert client.delete(f"/api/v1/projects/{project['id']}").status_code == 403


def test_delete_cascades_to_files_and_segments(client, login, db):
    login(client, "vid@example.com")
    project = create_project(client)
    file = make_file(db, project["id"])
    make_moment(db, file, 0, 10, embedding=[1.0, 0.0, 0.0])
    db.close()

    response = client.delete(f"/api/v1/projects/{project['id']}")

    assert response.status_code == 200
    assert db.query(Project).count() == 0
    assert db.query(File).count() == 0
    assert db.query(VideoMoment).count() == 0


def test_couple_sees_invited_projects(client, login):
    login(client, "vid@example.com")
    project = create_project(client)
    create_project(client, name="Not shared")
    client.post("/api/v1/projects/share", json={"projectId": project["id"], "coupleEmail": "couple@example.com"})

    login(client, "couple@example.com", user_type="couple")
    projects = client.get("/api/v1/projects").json()["projects"]

    assert [p["id"] for p in projects] == [project["id"]]


def test_project_files_for_owner_and_invited_couple(client, login, db):
    login(client, "vid@example.com")
    project = create_project(client)
    processed = make_file(db, project["id"], "ceremony.mp4", status="completed")
    make_file(db, project["id"], "reception.mp4")
    client.post("/api/v1/projects/share", json={"projectId": project["id"], "coupleEmail": "couple@example.com"})

    response = client.get(f"/api/v1/projects/{project['id']}/files")
    assert response.status_code == 200
    files = {f["filename"]: f for f in response.json()["files"]}
    assert set(files) == {"ceremony.mp4", "reception.mp4"}
    assert files["ceremony.mp4"]["id"] == processed.id
    assert files["ceremony.mp4"]["status"] == "completed"

    login(client, "couple@example.com", user_type="couple")
    assert len(client.get(f"/api/v1/projects/{project['id']}/files").json()["files"]) == 2


def test_project_files_access_checks(client, login, db):
    login(client, "vid@example.com")
    project = create_project(client)
    make_file(db, project["id"])

    login(client, "stranger@example.com", user_type="couple")
    assert client.get(f"/api/v1/projects/{project['id']}/files").status_code == 403
    assert client.get("/api/v1/projects/missing/files").status_code == 404


def test_user_lookup_and_idempotent_create(client):
    assert client.get("/api/v1/users?email=new@example.com").json() == {"user": None}

    created = client.post("/api/v1/users", json={"email": "new@example.com", "userType": "couple"})
    again = client.post("/api/v1/users", json={"email": "new@example.com", "userType": "couple"})

    assert created.status_code == 201
    assert again.status_code == 200
    assert again.json()["user"]["id"] == created.json()["user"]["id"]
    assert created.json()["user"]["name"] == "new"
    assert client.post("/api/v1/users", json={"email": "x@example.com"}).status_code == 400


def test_session_lifecycle(client, login):
    user = login(client, "vid@example.com")
    assert client.get("/api/v1/auth/session").json()["user"]["id"] == user["id"]

    client.delete("/api/v1/auth/session")
    assert client.get("/api/v1/auth/session").status_code == 401
