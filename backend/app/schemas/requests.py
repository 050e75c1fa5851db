from datetime import date
from typing import Optional

from pydantic import BaseModel


class SessionLogin(BaseModel):
    email: Optional[str] = None
    name: Optional[str] = None
    userType: Optional[str] = None


class UserCreate(BaseModel):
    email: Optional[str] = None
    name: Optional[str] = None
    userType: Optional[str] = None


class ProjectPayload(BaseModel):
    projectName: Optional[str] = None
    brideName: Optional[str] = None
    groomName: Optional[str] = None
    weddingDate: Optional[date] = None
    description: Optional[str] = None


class ShareRequest(BaseModel):
    projectId: Optional[str] = None
    coupleEmail: Optional[str] = None
    coupleName: Optional[str] = None
    message: Optional[str] = None


class SearchRequest(BaseModel):
    query: Optional[str] = None
    projectId: Optional[str] = None
    limit: int = 20
    similarityThreshold: float = 0.7


class SearchClick(BaseModel):
    searchQueryId: Optional[str] = None
    videoSegmentId: Optional[str] = None


class CompilationRequest(BaseModel):
    searchQuery: Optional[str] = None
    projectId: Optional[str] = None
    maxDuration: float = 300


class UploadRequest(BaseModel):
    fileName: Optional[str] = None
    fileType: Optional[str] = None
    projectId: Optional[str] = None


class FilesRequest(BaseModel):
    projectId: Optional[str] = None


class VideoUrlRequest(BaseModel):
    key: Optional[str] = None
    bucket: Optional[str] = None


class ProcessingStatusUpdate(BaseModel):
    fileId: Optional[str] = None
    projectId: Optional[str] = None
    stepFunctionsExecutionArn: Optional[str] = None
    status: str = "running"
    currentStep: Optional[str] = None
    progressPercentage: int = 0
    errorMessage: Optional[str] = None
