import logging
import uuid
from typing import Any, Dict, List, Optional

from sqlalchemy import String, cast, or_
from sqlalchemy.orm import Session

from app.core.config import settings
from app.services.media_convert import MediaConvertService
from app.services.storage_service import StorageService
from database.models import CompilationMoment, File, VideoCompilation, VideoMoment

logger = logging.getLogger(__name__)

MOCK_MOMENT_SECONDS = 30
MIN_QUALITY = 0.3
FILL_RATIO = 0.8
DEFAULT_SCORE = 0.5


def find_matching_moments(db: Session, project_id: str, search_query: str) -> List[Dict[str, Any]]:
    """Case-insensitive substring match over segment description, tags and transcript."""
    pattern = f"%{search_query}%"
    rows = (
        db.query(VideoMoment, File)
        .join(File, VideoMoment.file_id == File.id)
        .filter(File.project_id == project_id)
        .filter(or_(
            VideoMoment.description.ilike(pattern),
            cast(VideoMoment.tags, String).ilike(pattern),
            VideoMoment.transcript_text.ilike(pattern),
        ))
        .order_by(VideoMoment.confidence_score.desc(), VideoMoment.start_time_seconds.asc())
        .all()
    )
    return [
        {
            "id": moment.id,
            "file_id": file.id,
            "s3_key": file.s3_key,
            "proxy_s3_key": moment.proxy_s3_key or file.proxy_s3_key,
            "filename": file.filename,
            "start_time": moment.start_time_seconds,
            "end_time": moment.end_time_seconds,
            "description": moment.description or moment.transcript_text,
            "confidence": moment.confidence_score,
            "quality_score": moment.quality_score,
            "is_mock": False,
        }
        for moment, file in rows
    ]


def file_fallback_moments(db: Session, project_id: str, search_query: str) -> List[Dict[str, Any]]:
    """Lays each project file end to end as a 30 second stand-in moment."""
    files = (
        db.query(File)
        .filter(File.project_id == project_id)
        .order_by(File.created_at.desc())
        .all()
    )
    return [
        {
            "id": f"mock-moment-{file.id}-{index}",
            "file_id": file.id,
            "s3_key": file.s3_key,
            "proxy_s3_key": file.proxy_s3_key,
            "filename": file.filename,
            "start_time": index * MOCK_MOMENT_SECONDS,
            "end_time": (index + 1) * MOCK_MOMENT_SECONDS,
            "description": f"{search_query} - {file.filename}",
            "confidence": 0.8,
            "quality_score": 0.8,
            "is_mock": True,
        }
        for index, file in enumerate(files)
    ]


def _value(moment: Dict[str, Any], field: str) -> float:
    value = moment.get(field)
    return DEFAULT_SCORE if value is None else value


def _score(moment: Dict[str, Any]) -> float:
    return _value(moment, "confidence") * _value(moment, "quality_score")


def select_best_moments(moments: List[Dict[str, Any]], max_duration: float) -> List[Dict[str, Any]]:
    """
    Greedy pick by confidence x quality under a duration budget.

    Moments that would overrun the budget or have a quality below
    MIN_QUALITY are skipped. An unscored quality fails the floor and only
    counts as DEFAULT_SCORE in the ranking. Selection stops once FILL_RATIO
    of the budget is used. The result is returned in chronological order.
    """
    ranked = sorted(moments, key=_score, reverse=True)

    selected = []
    total_duration = 0.0
    for moment in ranked:
        duration = moment["end_time"] - moment["start_time"]
        if total_duration + duration > max_duration:
            continue
        if (moment.get("quality_score") or 0) < MIN_QUALITY:
            continue

        selected.append(moment)
        total_duration += duration

        if total_duration >= max_duration * FILL_RATIO:
            break

    return sorted(selected, key=lambda m: m["start_time"])


def total_duration(moments: List[Dict[str, Any]]) -> float:
    return sum(m["end_time"] - m["start_time"] for m in moments)


class CompilationService:
    def __init__(self, db: Session, storage: StorageService = None, media_convert: MediaConvertService = None):
        self.db = db
        self.storage = storage
        self.media_convert = media_convert

    def _media_convert(self) -> MediaConvertService:
        if self.media_convert is None:
            self.media_convert = MediaConvertService()
        return self.media_convert

    def _storage(self) -> StorageService:
        if self.storage is None:
            self.storage = StorageService()
        return self.storage

    def create(self, project_id: str, search_query: str, moments: List[Dict[str, Any]]) -> VideoCompilation:
        compilation_id = str(uuid.uuid4())
        duration = total_duration(moments)

        compilation = VideoCompilation(
            id=compilation_id,
            project_id=project_id,
            search_query=search_query,
            compilation_name=f"{search_query} - Wedding Moments",
            duration_seconds=duration,
            moment_count=len(moments),
            quality_score=0.9,
        )

        if settings.MEDIACONVERT_ROLE_ARN:
            clips = [
                {
                    "s3Key": m["s3_key"] or m["proxy_s3_key"],
                    "startTime": m["start_time"],
                    "endTime": m["end_time"],
                }
                for m in moments
            ]
            job = self._media_convert().create_compilation_job(compilation_id, clips)
            compilation.job_id = job["jobId"]
            compilation.s3_key = job["outputS3Key"]
            compilation.streaming_url = job["streamingUrl"]
            compilation.download_url = job["downloadUrl"]
            compilation.status = "processing"
        else:
            # No transcoder configured: hand back the first clip as the compilation
            first = moments[0]
            key = first["proxy_s3_key"] or first["s3_key"]
            url = self._storage().get_signed_url(key) if key else None
            compilation.s3_key = f"compilations/{compilation_id}.mp4"
            compilation.streaming_url = url
            compilation.download_url = url
            compilation.status = "completed"
            logger.info(f"Simple compilation {compilation_id} for {len(moments)} clips resolved to {url}")

        self.db.add(compilation)
        for moment in moments:
            if moment.get("is_mock"):
                continue
            self.db.add(CompilationMoment(
                compilation_id=compilation_id,
                moment_id=moment["id"],
                start_time_seconds=moment["start_time"],
                end_time_seconds=moment["end_time"],
                transition_type="smooth_cut",
                quality_score=moment.get("quality_score") or 0.8,
            ))
        self.db.commit()
        self.db.refresh(compilation)
        return compilation

    def refresh_status(self, compilation: VideoCompilation) -> Dict[str, Any]:
        if compilation.job_id:
            status_info = self._media_convert().check_compilation_status(compilation.job_id)
        else:
            status_info = {"status": "completed", "progress": 100}

        if status_info["status"] != compilation.status:
            compilation.status = status_info["status"]
            if status_info.get("error"):
                compilation.error_message = status_info["error"]
            self.db.commit()
            self.db.refresh(compilation)
        return status_info

    def list_for_project(self, project_id: str) -> List[Dict[str, Any]]:
        compilations = (
            self.db.query(VideoCompilation)
            .filter(VideoCompilation.project_id == project_id)
            .order_by(VideoCompilation.created_at.desc())
            .all()
        )
        results = []
        for compilation in compilations:
            qualities = [m.quality_score for m in compilation.moments if m.quality_score is not None]
            results.append({
                "id": compilation.id,
                "projectId": compilation.project_id,
                "searchQuery": compilation.search_query,
                "name": compilation.compilation_name,
                "status": compilation.status,
                "duration": compilation.duration_seconds,
                "momentCount": len(compilation.moments) or compilation.moment_count,
                "avgQuality": sum(qualities) / len(qualities) if qualities else None,
                "streamingUrl": compilation.streaming_url,
                "downloadUrl": compilation.download_url,
                "createdAt": compilation.created_at,
            })
        return results


def get_compilation(db: Session, compilation_id: str) -> Optional[VideoCompilation]:
    return db.get(VideoCompilation, compilation_id)
