import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    Column, String, Integer, Boolean, Float, ForeignKey, JSON, DateTime, Text, Date,
    CheckConstraint, Index, event
)
from sqlalchemy.orm import relationship

from database.database import Base


def _uuid() -> str:
    return str(uuid.uuid4())


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """SQLite hands back naive datetimes; treat them as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class User(Base):
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=_uuid)
    email = Column(String(255), unique=True, nullable=False, index=True)
    name = Column(String(255))
    user_type = Column(String(32), nullable=False, default="videographer") # videographer, couple
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)


class Project(Base):
    __tablename__ = "projects"

    id = Column(String(36), primary_key=True, default=_uuid)
    videographer_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    couple_id = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    project_name = Column(String(255), nullable=False)
    bride_name = Column(String(255))
    groom_name = Column(String(255))
    wedding_date = Column(Date)
    description = Column(Text)
    status = Column(String(32), default="active")
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    videographer = relationship("User", foreign_keys=[videographer_id])
    couple = relationship("User", foreign_keys=[couple_id])

    files = relationship("File", back_populates="project", cascade="all, delete-orphan")
    processing_jobs = relationship("ProcessingJob", back_populates="project", cascade="all, delete-orphan")
    moments = relationship("VideoMoment", back_populates="project", cascade="all, delete-orphan")
    analyses = relationship("AIAnalysis", back_populates="project", cascade="all, delete-orphan")
    search_queries = relationship("SearchQuery", back_populates="project", cascade="all, delete-orphan")
    invitations = relationship("ProjectInvitation", back_populates="project", cascade="all, delete-orphan")
    compilations = relationship("VideoCompilation", back_populates="project", cascade="all, delete-orphan")


class File(Base):
    __tablename__ = "files"

    id = Column(String(36), primary_key=True, default=_uuid)
    project_id = Column(String(36), ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True)
    filename = Column(String(512), nullable=False)
    s3_key = Column(String(1024))
    s3_bucket = Column(String(255))
    file_type = Column(String(32))
    file_size = Column(Integer)
    duration_seconds = Column(Float)
    proxy_s3_key = Column(String(1024))
    thumbnail_s3_key = Column(String(1024))
    status = Column(String(32), default="uploaded") # uploaded, processing, completed, failed
    processing_progress = Column(Integer, default=0)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    project = relationship("Project", back_populates="files")
    processing_jobs = relationship("ProcessingJob", back_populates="file", cascade="all, delete-orphan")
    moments = relationship("VideoMoment", back_populates="file", cascade="all, delete-orphan")
    analyses = relationship("AIAnalysis", back_populates="file", cascade="all, delete-orphan")


class ProcessingJob(Base):
    __tablename__ = "processing_jobs"

    id = Column(String(36), primary_key=True, default=_uuid)
    file_id = Column(String(36), ForeignKey("files.id", ondelete="CASCADE"), nullable=False, index=True)
    project_id = Column(String(36), ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True)
    step_functions_execution_arn = Column(String(500), unique=True, nullable=False)
    status = Column(String(32), default="running") # running, completed, failed, cancelled
    current_step = Column(String(100))
    progress_percentage = Column(Integer, default=0)
    error_message = Column(Text)
    started_at = Column(DateTime(timezone=True), default=utcnow)
    completed_at = Column(DateTime(timezone=True))
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    file = relationship("File", back_populates="processing_jobs")
    project = relationship("Project", back_populates="processing_jobs")


class AIAnalysis(Base):
    __tablename__ = "ai_analysis"

    id = Column(String(36), primary_key=True, default=_uuid)
    file_id = Column(String(36), ForeignKey("files.id", ondelete="CASCADE"), nullable=False, index=True)
    project_id = Column(String(36), ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True)
    analysis_type = Column(String(50), nullable=False)
    raw_data = Column(JSON)
    processed_data = Column(JSON)
    confidence_score = Column(Float)
    created_at = Column(DateTime(timezone=True), default=utcnow)

    file = relationship("File", back_populates="analyses")
    project = relationship("Project", back_populates="analyses")


class VideoMoment(Base):
    """A labelled time range within a source file, with its embedding."""
    __tablename__ = "video_moments"

    id = Column(String(36), primary_key=True, default=_uuid)
    file_id = Column(String(36), ForeignKey("files.id", ondelete="CASCADE"), nullable=False, index=True)
    project_id = Column(String(36), ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True)

    start_time_seconds = Column(Float, nullable=False)
    end_time_seconds = Column(Float, nullable=False)
    duration_seconds = Column(Float)
    content_type = Column(String(32), default="speech") # speech, visual, faces, shot
    transcript_text = Column(Text)
    description = Column(Text)
    tags = Column(JSON)
    confidence_score = Column(Float)
    quality_score = Column(Float)

    embedding_data = Column(JSON(none_as_null=True)) # list of floats
    embedding_model = Column(String(128))

    speaker_labels = Column(JSON)
    visual_labels = Column(JSON)
    face_data = Column(JSON)
    shot_data = Column(JSON)

    thumbnail_s3_key = Column(String(1024))
    proxy_s3_key = Column(String(1024))
    created_at = Column(DateTime(timezone=True), default=utcnow)

    file = relationship("File", back_populates="moments")
    project = relationship("Project", back_populates="moments")
    search_results = relationship("SearchResult", back_populates="moment", cascade="all, delete-orphan")
    compilation_entries = relationship("CompilationMoment", back_populates="moment", cascade="all, delete-orphan")

    __table_args__ = (
        CheckConstraint("start_time_seconds < end_time_seconds", name="ck_video_moments_time_range"),
        Index("idx_video_moments_project_type", "project_id", "content_type"),
    )


@event.listens_for(VideoMoment, "before_insert")
@event.listens_for(VideoMoment, "before_update")
def _check_time_range(mapper, connection, target):
    if target.start_time_seconds is None or target.end_time_seconds is None:
        raise ValueError("Segment start and end times are required")
    if target.start_time_seconds >= target.end_time_seconds:
        raise ValueError(
            f"Segment start ({target.start_time_seconds}) must be before end ({target.end_time_seconds})"
        )
    if target.duration_seconds is None:
        target.duration_seconds = target.end_time_seconds - target.start_time_seconds


class SearchQuery(Base):
    __tablename__ = "search_queries"

    id = Column(String(36), primary_key=True, default=_uuid)
    project_id = Column(String(36), ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    query_text = Column(Text, nullable=False)
    query_embedding_data = Column(JSON)
    results_count = Column(Integer, default=0)
    execution_time_ms = Column(Integer)
    created_at = Column(DateTime(timezone=True), default=utcnow)

    project = relationship("Project", back_populates="search_queries")
    results = relationship("SearchResult", back_populates="search_query", cascade="all, delete-orphan")


class SearchResult(Base):
    __tablename__ = "search_results"

    id = Column(String(36), primary_key=True, default=_uuid)
    search_query_id = Column(String(36), ForeignKey("search_queries.id", ondelete="CASCADE"), nullable=False, index=True)
    video_segment_id = Column(String(36), ForeignKey("video_moments.id", ondelete="CASCADE"), nullable=False, index=True)
    rank_position = Column(Integer, nullable=False)
    relevance_score = Column(Float)
    clicked = Column(Boolean, default=False)
    clicked_at = Column(DateTime(timezone=True))
    created_at = Column(DateTime(timezone=True), default=utcnow)

    search_query = relationship("SearchQuery", back_populates="results")
    moment = relationship("VideoMoment", back_populates="search_results")


class ProjectInvitation(Base):
    __tablename__ = "project_invitations"

    id = Column(String(36), primary_key=True, default=_uuid)
    project_id = Column(String(36), ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True)
    videographer_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    couple_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=True, index=True)
    couple_email = Column(String(255), nullable=False, index=True)
    invitation_message = Column(Text)
    status = Column(String(32), default="sent") # sent, accepted, declined, expired
    invitation_token = Column(String(255), unique=True, index=True)
    accepted_at = Column(DateTime(timezone=True))
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    project = relationship("Project", back_populates="invitations")
    videographer = relationship("User", foreign_keys=[videographer_id])
    couple = relationship("User", foreign_keys=[couple_id])


class VideoCompilation(Base):
    __tablename__ = "video_compilations"

    id = Column(String(36), primary_key=True, default=_uuid)
    project_id = Column(String(36), ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True)
    search_query = Column(Text, nullable=False)
    compilation_name = Column(String(255), nullable=False)
    s3_key = Column(String(500))
    streaming_url = Column(Text)
    download_url = Column(Text)
    duration_seconds = Column(Float)
    moment_count = Column(Integer, default=0)
    quality_score = Column(Float, default=0.8)
    status = Column(String(32), default="pending", index=True)
    job_id = Column(String(255))
    error_message = Column(Text)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    project = relationship("Project", back_populates="compilations")
    moments = relationship("CompilationMoment", back_populates="compilation", cascade="all, delete-orphan")


class CompilationMoment(Base):
    __tablename__ = "compilation_moments"

    id = Column(String(36), primary_key=True, default=_uuid)
    compilation_id = Column(String(36), ForeignKey("video_compilations.id", ondelete="CASCADE"), nullable=False, index=True)
    moment_id = Column(String(36), ForeignKey("video_moments.id", ondelete="CASCADE"), nullable=False)
    start_time_seconds = Column(Float, nullable=False)
    end_time_seconds = Column(Float, nullable=False)
    transition_type = Column(String(50), default="smooth_cut")
    quality_score = Column(Float, default=0.8)
    created_at = Column(DateTime(timezone=True), default=utcnow)

    compilation = relationship("VideoCompilation", back_populates="moments")
    moment = relationship("VideoMoment", back_populates="compilation_entries")
