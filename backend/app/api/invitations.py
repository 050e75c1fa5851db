import logging
from datetime import timedelta

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from app.api.deps import get_current_user, server_error
from app.core.config import settings
from database.database import get_db
from database.models import Project, ProjectInvitation, User, as_utc, utcnow

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/invitations", tags=["invitations"])


def is_expired(invitation: ProjectInvitation) -> bool:
    cutoff = utcnow() - timedelta(days=settings.INVITATION_TTL_DAYS)
    return as_utc(invitation.created_at) < cutoff


def _open_invitation(db: Session, token: str, missing_detail: str) -> ProjectInvitation:
    invitation = (
        db.query(ProjectInvitation)
        .filter(ProjectInvitation.invitation_token == token)
        .filter(ProjectInvitation.status == "sent")
        .first()
    )
    if invitation is None:
        raise HTTPException(status_code=404, detail=missing_detail)
    if is_expired(invitation):
        raise HTTPException(status_code=410, detail="Invitation has expired")
    return invitation


@router.get("/{token}")
def get_invitation(token: str, db: Session = Depends(get_db)):
    invitation = _open_invitation(db, token, "Invitation not found or has expired")
    project = invitation.project
    videographer = invitation.videographer

    return {
        "project": {
            "id": project.id,
            "project_name": project.project_name,
            "bride_name": project.bride_name,
            "groom_name": project.groom_name,
            "wedding_date": project.wedding_date,
            "description": project.description,
        },
        "videographer": {"name": videographer.name, "email": videographer.email},
        "invitation": {
            "invitation_message": invitation.invitation_message,
            "status": invitation.status,
            "created_at": invitation.created_at,
        },
    }


@router.post("/{token}/accept")
def accept_invitation(token: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    """Links the signed-in user to the project as its couple."""
    invitation = _open_invitation(db, token, "Invitation not found or has already been accepted")

    try:
        invitation.status = "accepted"
        invitation.accepted_at = utcnow()
        invitation.couple_id = user.id

        project = db.get(Project, invitation.project_id)
        project.couple_id = user.id
        user.user_type = "couple"
        db.commit()
    except Exception as e:
        db.rollback()
        raise server_error("Failed to accept invitation", e)

    logger.info(f"Invitation accepted: {project.project_name} by user {user.id}")
    return {
        "success": True,
        "message": "Invitation accepted successfully",
        "projectId": project.id,
        "projectName": project.project_name,
    }
