from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict


class UserOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    email: str
    name: Optional[str] = None
    user_type: str
    created_at: Optional[datetime] = None


class ProjectOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    videographer_id: str
    couple_id: Optional[str] = None
    project_name: str
    bride_name: Optional[str] = None
    groom_name: Optional[str] = None
    wedding_date: Optional[date] = None
    description: Optional[str] = None
    status: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class ProjectSummary(ProjectOut):
    file_count: int = 0
    processed_files: int = 0


class FileOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    project_id: str
    filename: str
    s3_key: Optional[str] = None
    s3_bucket: Optional[str] = None
    file_type: Optional[str] = None
    file_size: Optional[int] = None
    duration_seconds: Optional[float] = None
    proxy_s3_key: Optional[str] = None
    thumbnail_s3_key: Optional[str] = None
    status: Optional[str] = None
    processing_progress: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class InvitationOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    project_id: str
    couple_id: Optional[str] = None
    couple_email: str
    invitation_message: Optional[str] = None
    status: str
    invitation_token: Optional[str] = None
    accepted_at: Optional[datetime] = None
    created_at: Optional[datetime] = None


class SearchHit(BaseModel):
    id: str
    fileId: str
    startTime: float
    endTime: float
    duration: float
    content: str
    contentType: str
    confidence: Optional[float] = None
    similarity: float
    thumbnailUrl: Optional[str] = None
    videoUrl: Optional[str] = None
