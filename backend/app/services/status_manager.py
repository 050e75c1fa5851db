from contextlib import contextmanager
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session
from database.database import SessionLocal
from database.models import File, ProcessingJob, VideoMoment, utcnow
import logging

logger = logging.getLogger(__name__)

TERMINAL_JOB_STATES = {"completed", "failed", "cancelled"}


class StatusManager:
    """
    Tracks file processing status and pipeline job progress.
    Opens its own session per call unless one is passed in.
    """
    def __init__(self, db: Optional[Session] = None):
        self._db = db

    @contextmanager
    def session(self):
        if self._db is not None:
            yield self._db
            return
        db = SessionLocal()
        try:
            yield db
        finally:
            db.close()

    def init_job(self, file_id: str, project_id: str, s3_key: str, bucket: str,
                 execution_arn: str) -> ProcessingJob:
        with self.session() as db:
            try:
                file = db.get(File, file_id)
                if file is None:
                    file = File(
                        id=file_id,
                        project_id=project_id,
                        filename=s3_key.split("/")[-1] or s3_key,
                        s3_key=s3_key,
                        s3_bucket=bucket,
                        file_type=s3_key.rsplit(".", 1)[-1] if "." in s3_key else "mp4",
                    )
                    db.add(file)
                file.status = "processing"
                file.processing_progress = 0

                job = ProcessingJob(
                    file_id=file_id,
                    project_id=project_id,
                    step_functions_execution_arn=execution_arn,
                    status="running",
                    current_step="initialize",
                    progress_percentage=5,
                )
                db.add(job)
                db.commit()
                db.refresh(job)
                logger.info(f"Processing job initialized for file {file_id} ({execution_arn})")
                return job
            except Exception:
                db.rollback()
                raise

    def upsert_job(self, file_id: str, project_id: str, execution_arn: str, status: str = "running",
                   current_step: str = None, progress_percentage: int = 0,
                   error_message: str = None) -> ProcessingJob:
        """Creates or updates the job identified by its pipeline execution ARN."""
        with self.session() as db:
            try:
                job = (
                    db.query(ProcessingJob)
                    .filter(ProcessingJob.step_functions_execution_arn == execution_arn)
                    .first()
                )
                if job is None:
                    job = ProcessingJob(
                        file_id=file_id,
                        project_id=project_id,
                        step_functions_execution_arn=execution_arn,
                    )
                    db.add(job)

                job.status = status
                job.current_step = current_step
                job.progress_percentage = progress_percentage or 0
                job.error_message = error_message
                if status in TERMINAL_JOB_STATES:
                    job.completed_at = utcnow()

                db.commit()
                db.refresh(job)
                logger.info(f"Job {execution_arn} -> {status} ({current_step}, {job.progress_percentage}%)")
                return job
            except Exception:
                db.rollback()
                raise

    def update_file_status(self, file_id: str, status: str, progress: int = None):
        with self.session() as db:
            file = db.get(File, file_id)
            if file is None:
                logger.warning(f"File ID {file_id} not found for status update.")
                return
            file.status = status
            if progress is not None:
                file.processing_progress = progress
            db.commit()
            logger.info(f"Updated Status [File: {file_id}] -> {status}")

    def finish_job(self, execution_arn: str, status: str, error_message: str = None) -> Optional[ProcessingJob]:
        """Moves a job and its file to a terminal state."""
        with self.session() as db:
            job = (
                db.query(ProcessingJob)
                .filter(ProcessingJob.step_functions_execution_arn == execution_arn)
                .first()
            )
            if job is None:
                logger.warning(f"Processing job {execution_arn} not found.")
                return None

            job.status = status
            job.current_step = "complete" if status == "completed" else job.current_step
            job.error_message = error_message
            job.completed_at = utcnow()
            if status == "completed":
                job.progress_percentage = 100

            file = db.get(File, job.file_id)
            if file is not None:
                file.status = "completed" if status == "completed" else "failed"
                if status == "completed":
                    file.processing_progress = 100

            db.commit()
            db.refresh(job)
            logger.info(f"Job {execution_arn} finished: {status}")
            return job

    def get_latest_job(self, file_id: str) -> Optional[Dict[str, Any]]:
        with self.session() as db:
            job = (
                db.query(ProcessingJob)
                .filter(ProcessingJob.file_id == file_id)
                .order_by(ProcessingJob.started_at.desc())
                .first()
            )
            if job is None:
                return None
            return {
                "job_id": job.id,
                "status": job.status,
                "current_step": job.current_step,
                "progress_percentage": job.progress_percentage,
                "error_message": job.error_message,
                "started_at": job.started_at,
                "completed_at": job.completed_at,
            }

    def get_file_status(self, file_id: str) -> Optional[Dict[str, Any]]:
        with self.session() as db:
            file = db.get(File, file_id)
            if file is None:
                return None
            moments_count = db.query(VideoMoment).filter(VideoMoment.file_id == file_id).count()
            return {
                "file_id": file.id,
                "status": file.status or "uploaded",
                "filename": file.filename,
                "project_name": file.project.project_name if file.project else None,
                "moments_count": moments_count,
                "processing_progress": file.processing_progress or 0,
            }
