from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from app.api.deps import get_current_user, server_error
from app.schemas.requests import ProcessingStatusUpdate
from app.services.status_manager import StatusManager
from database.database import get_db
from database.models import User

router = APIRouter(prefix="/processing-status", tags=["processing"])


@router.get("")
def get_processing_status(fileId: Optional[str] = None,
                          user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    if not fileId:
        raise HTTPException(status_code=400, detail="File ID is required")

    try:
        job = StatusManager(db).get_latest_job(fileId)
    except Exception as e:
        raise server_error("Failed to get processing status", e)

    if job is None:
        raise HTTPException(status_code=404, detail="No processing job found for this file")

    return {
        "jobId": job["job_id"],
        "status": job["status"],
        "currentStep": job["current_step"],
        "progressPercentage": job["progress_percentage"],
        "errorMessage": job["error_message"],
        "startedAt": job["started_at"],
        "completedAt": job["completed_at"],
    }


@router.post("")
def update_processing_status(payload: ProcessingStatusUpdate,
                             user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    if not payload.fileId or not payload.projectId or not payload.stepFunctionsExecutionArn:
        raise HTTPException(
            status_code=400,
            detail="File ID, project ID, and Step Functions execution ARN are required",
        )

    try:
        job = StatusManager(db).upsert_job(
            payload.fileId,
            payload.projectId,
            payload.stepFunctionsExecutionArn,
            status=payload.status,
            current_step=payload.currentStep,
            progress_percentage=payload.progressPercentage,
            error_message=payload.errorMessage,
        )
    except Exception as e:
        raise server_error("Failed to update processing status", e)

    return {"success": True, "jobId": job.id, "message": "Processing status updated successfully"}
