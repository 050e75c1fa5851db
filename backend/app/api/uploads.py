import logging
import os
import time

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from app.api.deps import get_current_user, server_error
from app.schemas.requests import FilesRequest, UploadRequest, VideoUrlRequest
from app.services.status_manager import StatusManager
from app.services.storage_service import StorageService
from database.database import get_db
from database.models import File, Project, User

logger = logging.getLogger(__name__)

router = APIRouter(tags=["uploads"])


def upload_prefix(project_id: str) -> str:
    return f"uploads/{project_id}/"


@router.post("/upload")
def create_upload(payload: UploadRequest, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    """
    Hands out a presigned PUT URL for a raw upload and records the file.
    The browser uploads directly to object storage.
    """
    if not payload.fileName or not payload.projectId:
        raise HTTPException(status_code=400, detail="fileName and projectId are required")

    if db.get(Project, payload.projectId) is None:
        raise HTTPException(status_code=404, detail="Project not found")

    key = f"{upload_prefix(payload.projectId)}{int(time.time() * 1000)}-{payload.fileName}"
    content_type = payload.fileType or "application/octet-stream"

    try:
        presigned = StorageService().create_presigned_upload(key, content_type)

        extension = os.path.splitext(payload.fileName)[1].lstrip(".").lower()
        file = File(
            project_id=payload.projectId,
            filename=payload.fileName,
            s3_key=presigned["key"],
            s3_bucket=presigned["bucket"],
            file_type=extension or None,
            status="uploaded",
        )
        db.add(file)
        db.commit()
        db.refresh(file)
    except Exception as e:
        db.rollback()
        raise server_error("Failed to get presigned URL", e)

    return {
        "success": True,
        "presignedUrl": presigned["url"],
        "key": presigned["key"],
        "bucket": presigned["bucket"],
        "file": {"id": file.id, "filename": file.filename, "status": file.status},
    }


@router.post("/files")
def list_files(payload: FilesRequest, user: User = Depends(get_current_user)):
    if not payload.projectId:
        raise HTTPException(status_code=400, detail="projectId is required")

    try:
        objects = StorageService().list_videos(upload_prefix(payload.projectId))
    except Exception as e:
        raise server_error("Failed to list files", e)

    items = [
        {
            "key": obj["key"],
            "fileName": obj["file_name"],
            "size": obj["size"],
            "lastModified": obj["last_modified"],
        }
        for obj in objects
    ]
    return {"success": True, "items": items}


@router.get("/files/{file_id}/status")
def file_status(file_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    try:
        status = StatusManager(db).get_file_status(file_id)
    except Exception as e:
        raise server_error("Failed to fetch file status", e)

    if status is None:
        raise HTTPException(status_code=404, detail="File not found")

    return {
        "fileId": status["file_id"],
        "status": status["status"],
        "filename": status["filename"],
        "projectName": status["project_name"],
        "momentsCount": status["moments_count"],
        "processingProgress": status["processing_progress"],
    }


@router.post("/video-url")
def video_url(payload: VideoUrlRequest, user: User = Depends(get_current_user)):
    if not payload.key:
        raise HTTPException(status_code=400, detail="Missing key or bucket")

    try:
        url = StorageService().get_signed_url(payload.key, bucket_name=payload.bucket, expires_in=3600)
    except Exception as e:
        raise server_error("Failed to get presigned URL", e)

    return {"success": True, "videoUrl": url}
