from datetime import timedelta

import pytest

from database.models import Project, ProjectInvitation, User, utcnow


@pytest.fixture
def shared_project(client, login):
    login(client, "vid@example.com", name="Vera Videographer")
    project = client.post("/api/v1/projects", json={"projectName": "Smith Wedding"}).json()["project"]
    response = client.post("/api/v1/projects/share", json={
        "projectId": project["id"],
        "coupleEmail": "couple@example.com",
        "coupleName": "Anna & Ben",
        "message": "Enjoy!",
    })
    assert response.status_code == 200, response.text
    return project, response.json()


def token_for(db, project_id):
    return db.query(ProjectInvitation).filter_by(project_id=project_id).one().invitation_token


def age_invitation(db, project_id, days):
    invitation = db.query(ProjectInvitation).filter_by(project_id=project_id).one()
    invitation.created_at = utcnow() - timedelta(days=days)
    db.commit()


def test_share_creates_couple_and_invitation(db, shared_project):
    project, body = shared_project

    couple = db.query(User).filter_by(email="couple@example.com").one()
    assert couple.user_type == "couple"
    assert body["coupleId"] == couple.id
    # No AWS region in tests, so the email is skipped without failing the share
    assert body["emailSent"] is False

    invitation = db.query(ProjectInvitation).filter_by(project_id=project["id"]).one()
    assert invitation.status == "sent"
    assert invitation.invitation_message == "Enjoy!"
    assert db.get(Project, project["id"]).couple_id == couple.id


def test_share_requires_ownership(client, login, shared_project):
    project, _ = shared_project
    login(client, "intruder@example.com")
    response = client.post("/api/v1/projects/share",
                           json={"projectId": project["id"], "coupleEmail": "x@example.com"})
    assert response.status_code == 404


def test_list_invitations(client, shared_project):
    project, _ = shared_project
    invitations = client.get(f"/api/v1/projects/share?projectId={project['id']}").json()["invitations"]
    assert len(invitations) == 1
    assert invitations[0]["couple_email"] == "couple@example.com"
    assert invitations[0]["couple_type"] == "couple"


def test_fetch_invitation_is_public(client, db, shared_project):
    project, _ = shared_project
    client.delete("/api/v1/auth/session")

    response = client.get(f"/api/v1/invitations/{token_for(db, project['id'])}")

    assert response.status_code == 200
    body = response.json()
    assert body["project"]["project_name"] == "Smith Wedding"
    assert body["videographer"]["email"] == "vid@example.com"
    assert body["invitation"]["invitation_message"] == "Enjoy!"


def test_unknown_invitation_is_404(client):
    assert client.get("/api/v1/invitations/nope").status_code == 404


def test_expired_invitation_is_gone(client, login, db, shared_project):
    project, _ = shared_project
    token = token_for(db, project["id"])
    age_invitation(db, project["id"], days=31)

    assert client.get(f"/api/v1/invitations/{token}").status_code == 410

    login(client, "couple@example.com", user_type="couple")
    assert client.post(f"/api/v1/invitations/{token}/accept").status_code == 410


def test_invitation_inside_window_is_valid(client, db, shared_project):
    project, _ = shared_project
    age_invitation(db, project["id"], days=29)
    assert client.get(f"/api/v1/invitations/{token_for(db, project['id'])}").status_code == 200


def test_accept_links_user_to_project(client, login, db, shared_project):
    project, _ = shared_project
    token = token_for(db, project["id"])
    user = login(client, "partner@example.com", user_type="videographer")

    response = client.post(f"/api/v1/invitations/{token}/accept")

    assert response.status_code == 200
    assert response.json()["projectId"] == project["id"]

    db.expire_all()
    invitation = db.query(ProjectInvitation).filter_by(invitation_token=token).one()
    assert invitation.status == "accepted"
    assert invitation.accepted_at is not None
    assert db.get(Project, project["id"]).couple_id == user["id"]
    assert db.get(User, user["id"]).user_type == "couple"

    # An accepted invitation cannot be fetched or accepted again
    assert client.get(f"/api/v1/invitations/{token}").status_code == 404
    assert client.post(f"/api/v1/invitations/{token}/accept").status_code == 404


def test_accept_requires_session(client, db, shared_project):
    project, _ = shared_project
    client.delete("/api/v1/auth/session")
    assert client.post(f"/api/v1/invitations/{token_for(db, project['id'])}/accept").status_code == 401
