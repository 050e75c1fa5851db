import logging
import uuid
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from sqlalchemy import case, func
from sqlalchemy.orm import Session

from app.api.deps import can_view_project, get_current_user, server_error
from app.schemas.requests import ProjectPayload, ShareRequest
from app.schemas.responses import FileOut, InvitationOut, ProjectOut, ProjectSummary
from app.services.email_service import EmailService, InvitationEmail
from app.utils.cache import invalidate_project
from database.database import get_db
from database.models import File, Project, ProjectInvitation, User

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/projects", tags=["projects"])

VISIBLE_INVITATION_STATES = ("sent", "accepted")


def _with_file_counts(query):
    processed = func.count(case((File.status == "completed", 1)))
    return (
        query.outerjoin(File, File.project_id == Project.id)
        .add_columns(func.count(File.id).label("file_count"), processed.label("processed_files"))
        .group_by(Project.id)
        .order_by(Project.created_at.desc())
    )


def _owned_project(db: Session, project_id: str, user: User) -> Project:
    project = db.get(Project, project_id)
    if project is None:
        raise HTTPException(status_code=404, detail="Project not found")
    if project.videographer_id != user.id:
        raise HTTPException(status_code=403, detail="Access denied")
    return project


@router.get("")
def list_projects(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    """Videographers see the projects they own, couples the ones they were invited to."""
    try:
        if user.user_type == "videographer":
            query = db.query(Project).filter(Project.videographer_id == user.id)
        elif user.user_type == "couple":
            invited = (
                db.query(ProjectInvitation.project_id)
                .filter(ProjectInvitation.couple_id == user.id)
                .filter(ProjectInvitation.status.in_(VISIBLE_INVITATION_STATES))
            )
            query = db.query(Project).filter(Project.id.in_(invited))
        else:
            raise HTTPException(status_code=400, detail="Invalid user type")

        rows = _with_file_counts(query).all()
    except HTTPException:
        raise
    except Exception as e:
        raise server_error("Failed to fetch projects", e)

    projects = []
    for project, file_count, processed_files in rows:
        summary = ProjectSummary.model_validate(project)
        summary.file_count = file_count
        summary.processed_files = processed_files
        projects.append(summary)
    return {"projects": projects}


@router.post("")
def create_project(payload: ProjectPayload, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    if not payload.projectName:
        raise HTTPException(status_code=400, detail="Project name is required")

    try:
        project = Project(
            videographer_id=user.id,
            project_name=payload.projectName,
            bride_name=payload.brideName,
            groom_name=payload.groomName,
            wedding_date=payload.weddingDate,
            description=payload.description,
        )
        db.add(project)
        db.commit()
        db.refresh(project)
    except Exception as e:
        db.rollback()
        raise server_error("Failed to create project", e)

    logger.info(f"Project {project.id} created by {user.id}")
    return JSONResponse(status_code=201, content=jsonable_encoder({"project": ProjectOut.model_validate(project)}))


@router.put("/{project_id}")
def update_project(project_id: str, payload: ProjectPayload,
                   user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    if not payload.projectName:
        raise HTTPException(status_code=400, detail="Project name is required")

    project = _owned_project(db, project_id, user)
    try:
        project.project_name = payload.projectName
        project.bride_name = payload.brideName
        project.groom_name = payload.groomName
        project.wedding_date = payload.weddingDate
        project.description = payload.description
        db.commit()
        db.refresh(project)
    except Exception as e:
        db.rollback()
        raise server_error("Failed to update project", e)

    return {"project": ProjectOut.model_validate(project)}


@router.delete("/{project_id}")
def delete_project(project_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    """Deletes the project together with every file, segment, query and compilation under it."""
    project = _owned_project(db, project_id, user)
    try:
        db.delete(project)
        db.commit()
    except Exception as e:
        db.rollback()
        raise server_error("Failed to delete project", e)

    invalidate_project(project_id)
    logger.info(f"Project {project_id} deleted by {user.id}")
    return {"message": "Project deleted successfully"}


def _has_open_invitation(db: Session, project_id: str, user: User) -> bool:
    return (
        db.query(ProjectInvitation.id)
        .filter(ProjectInvitation.project_id == project_id)
        .filter(ProjectInvitation.couple_id == user.id)
        .filter(ProjectInvitation.status.in_(VISIBLE_INVITATION_STATES))
        .first()
        is not None
    )


@router.get("/{project_id}/files")
def list_project_files(project_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    """Files recorded for a project, newest first, with their processing status."""
    project = db.get(Project, project_id)
    if project is None:
        raise HTTPException(status_code=404, detail="Project not found")
    if not (can_view_project(project, user) or _has_open_invitation(db, project_id, user)):
        raise HTTPException(status_code=403, detail="Unauthorized access to project files")

    try:
        files = (
            db.query(File)
            .filter(File.project_id == project_id)
            .order_by(File.created_at.desc())
            .all()
        )
    except Exception as e:
        raise server_error("Failed to fetch project files", e)

    return {"files": [FileOut.model_validate(file) for file in files]}


@router.post("/share")
def share_project(payload: ShareRequest, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    if not payload.projectId or not payload.coupleEmail:
        raise HTTPException(status_code=400, detail="Project ID and couple email are required")

    project = db.get(Project, payload.projectId)
    if project is None or project.videographer_id != user.id:
        raise HTTPException(status_code=404, detail="Project not found or you do not have permission to share it")

    try:
        couple = db.query(User).filter(User.email == payload.coupleEmail).first()
        if couple is None:
            couple = User(
                email=payload.coupleEmail,
                name=payload.coupleName or payload.coupleEmail.split("@")[0],
                user_type="couple",
            )
            db.add(couple)
            db.flush()
        elif couple.user_type != "couple":
            couple.user_type = "couple"

        project.couple_id = couple.id

        invitation = ProjectInvitation(
            project_id=project.id,
            videographer_id=user.id,
            couple_id=couple.id,
            couple_email=payload.coupleEmail,
            invitation_message=payload.message
            or f"You've been invited to view your wedding video project: {project.project_name}",
            status="sent",
            invitation_token=str(uuid.uuid4()),
        )
        db.add(invitation)
        db.commit()
        db.refresh(invitation)
    except Exception as e:
        db.rollback()
        raise server_error("Failed to share project", e)

    email_result = EmailService().send_invitation(InvitationEmail(
        videographer_name=user.name or user.email,
        videographer_email=user.email,
        project_name=project.project_name,
        bride_name=project.bride_name or "",
        groom_name=project.groom_name or "",
        wedding_date=project.wedding_date.isoformat() if project.wedding_date else "TBD",
        invitation_token=invitation.invitation_token,
        couple_email=payload.coupleEmail,
        couple_name=payload.coupleName,
        invitation_message=payload.message,
    ))
    if not email_result["success"]:
        logger.warning(f"Failed to send invitation email: {email_result['error']}")

    return {
        "success": True,
        "message": "Project shared successfully and invitation sent.",
        "coupleId": couple.id,
        "projectId": project.id,
        "emailSent": email_result["success"],
        "emailError": email_result["error"],
    }


@router.get("/share")
def list_invitations(projectId: Optional[str] = None,
                     user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    if not projectId:
        raise HTTPException(status_code=400, detail="Project ID is required")

    try:
        invitations = (
            db.query(ProjectInvitation)
            .filter(ProjectInvitation.project_id == projectId)
            .order_by(ProjectInvitation.created_at.desc())
            .all()
        )
    except Exception as e:
        raise server_error("Failed to get project sharing information", e)

    return {
        "invitations": [
            {
                **InvitationOut.model_validate(invitation).model_dump(),
                "couple_name": invitation.couple.name if invitation.couple else None,
                "couple_type": invitation.couple.user_type if invitation.couple else None,
            }
            for invitation in invitations
        ]
    }
