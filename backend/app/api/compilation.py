import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from app.api.deps import can_view_project, get_current_user, server_error
from app.schemas.requests import CompilationRequest
from app.services.compilation_service import (
    CompilationService,
    file_fallback_moments,
    find_matching_moments,
    get_compilation,
    select_best_moments,
)
from database.database import get_db
from database.models import User

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/compilation", tags=["compilation"])


@router.post("")
def create_compilation(payload: CompilationRequest,
                       user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    """
    Builds a highlight reel for a search phrase.

    Matching segments are picked greedily under maxDuration. When nothing
    matches, the project's files stand in as 30 second moments.
    """
    if not payload.searchQuery or not payload.projectId:
        raise HTTPException(status_code=400, detail="Search query and project ID are required")

    try:
        moments = find_matching_moments(db, payload.projectId, payload.searchQuery)
        if not moments:
            logger.info(f"No segments match '{payload.searchQuery}'; falling back to project files")
            moments = file_fallback_moments(db, payload.projectId, payload.searchQuery)

        selected = select_best_moments(moments, payload.maxDuration)
        if not selected:
            return {"compilation": None, "message": "No files found for compilation"}

        compilation = CompilationService(db).create(payload.projectId, payload.searchQuery, selected)
    except Exception as e:
        db.rollback()
        raise server_error("Failed to create compilation", e)

    logger.info(f"Compilation created: {compilation.compilation_name} ({compilation.status})")
    return {
        "success": True,
        "compilation": {
            "id": compilation.id,
            "name": compilation.compilation_name,
            "status": compilation.status,
            "duration": compilation.duration_seconds,
            "momentCount": compilation.moment_count,
            "s3Key": compilation.s3_key,
            "streamingUrl": compilation.streaming_url,
            "downloadUrl": compilation.download_url,
        },
        "moments": [
            {
                "id": m["id"],
                "filename": m["filename"],
                "startTime": m["start_time"],
                "endTime": m["end_time"],
                "description": m["description"],
                "qualityScore": m["quality_score"],
            }
            for m in selected
        ],
    }


@router.get("")
def list_compilations(projectId: Optional[str] = None,
                      user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    if not projectId:
        raise HTTPException(status_code=400, detail="Project ID is required")

    try:
        compilations = CompilationService(db).list_for_project(projectId)
    except Exception as e:
        raise server_error("Failed to fetch compilations", e)

    return {"compilations": compilations}


@router.get("/{compilation_id}/status")
def compilation_status(compilation_id: str,
                       user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    compilation = get_compilation(db, compilation_id)
    if compilation is None:
        raise HTTPException(status_code=404, detail="Compilation not found")
    if not can_view_project(compilation.project, user):
        raise HTTPException(status_code=403, detail="Access denied")

    try:
        status_info = CompilationService(db).refresh_status(compilation)
    except Exception as e:
        db.rollback()
        raise server_error("Failed to check compilation status", e)

    return {
        "id": compilation.id,
        "status": status_info["status"],
        "progress": status_info.get("progress"),
        "error": status_info.get("error"),
        "streamingUrl": compilation.streaming_url,
        "downloadUrl": compilation.download_url,
        "duration": compilation.duration_seconds,
        "momentCount": compilation.moment_count,
        "createdAt": compilation.created_at,
        "updatedAt": compilation.updated_at,
    }
