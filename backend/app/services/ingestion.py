"""
Ingestion pipeline steps.

Each step is a handler(event) -> {"statusCode", "body"} reading its
arguments from event["input"]. An orchestrator calls them in order and
threads each body into the next step's input. Any exception becomes a
500 body of the form {"error": message}; nothing is retried.
"""
import functools
import json
import os
import random
import time
from typing import Any, Callable, Dict, List

import boto3

from app.core.config import settings
from app.services.media_convert import MediaConvertService
from app.services.status_manager import StatusManager
from app.services.vector_service import VectorService
from app.utils.cache import invalidate_project
from app.utils.logger import logger
from database.database import SessionLocal
from database.models import VideoMoment

SHOT_COUNT = 20
SHOT_SECONDS = 5
THUMBNAIL_COUNT = 10
THUMBNAIL_INTERVAL = 30
KEYFRAME_COUNT = 30
KEYFRAME_INTERVAL = 10


def aws_client(service: str):
    return boto3.client(service, region_name=settings.AWS_REGION or None)


def _epoch_ms() -> int:
    return int(time.time() * 1000)


def _stem(key: str) -> str:
    return os.path.splitext(key)[0]


def pipeline_step(name: str):
    """Wraps a step body into the {"statusCode", "body"} envelope."""
    def decorator(func: Callable[[Dict[str, Any]], Dict[str, Any]]):
        @functools.wraps(func)
        def handler(event: Dict[str, Any]) -> Dict[str, Any]:
            logger.info(f"{name} handler received: {json.dumps(event, default=str)[:2000]}")
            try:
                body = func(event.get("input") or {})
                return {"statusCode": 200, "body": body}
            except Exception as e:
                logger.error(f"{name} error: {e}")
                return {"statusCode": 500, "body": {"error": str(e)}}
        handler.step_name = name
        return handler
    return decorator


@pipeline_step("InitJob")
def init_job(payload: Dict[str, Any]) -> Dict[str, Any]:
    s3_key = payload["s3Key"]
    bucket = payload["bucket"]
    project_id = payload["projectId"]
    file_id = payload.get("fileId") or f"file-{_epoch_ms()}"
    execution_arn = payload.get("stepFunctionsExecutionArn") or f"exec-{_epoch_ms()}"

    StatusManager().init_job(file_id, project_id, s3_key, bucket, execution_arn)

    return {
        "fileId": file_id,
        "projectId": project_id,
        "s3Key": s3_key,
        "bucket": bucket,
        "stepFunctionsExecutionArn": execution_arn,
        "status": "initialized",
    }


@pipeline_step("Transcribe")
def transcribe(payload: Dict[str, Any]) -> Dict[str, Any]:
    s3_key = payload["s3Key"]
    bucket = payload["bucket"]
    project_id = payload["projectId"]

    job_name = f"transcribe-{project_id}-{_epoch_ms()}"
    transcript_key = f"{project_id}/transcripts/{job_name}.json"

    response = aws_client("transcribe").start_transcription_job(
        TranscriptionJobName=job_name,
        Media={"MediaFileUri": f"s3://{bucket}/{s3_key}"},
        MediaFormat="mp4" if s3_key.endswith(".mp4") else "mp3",
        LanguageCode="en-US",
        OutputBucketName=settings.ANALYSIS_BUCKET,
        OutputKey=transcript_key,
        Settings={
            "ShowSpeakerLabels": True,
            "MaxSpeakerLabels": 10,
            "ShowAlternatives": True,
            "MaxAlternatives": 3,
        },
    )
    job = response["TranscriptionJob"]
    logger.info(f"Transcription job started: {job['TranscriptionJobName']}")

    return {
        "jobName": job["TranscriptionJobName"],
        "status": job.get("TranscriptionJobStatus"),
        "projectId": project_id,
        "transcriptKey": transcript_key,
    }


@pipeline_step("FetchTranscript")
def fetch_transcript(payload: Dict[str, Any]) -> Dict[str, Any]:
    response = aws_client("s3").get_object(
        Bucket=payload.get("bucket") or settings.ANALYSIS_BUCKET,
        Key=payload["transcriptKey"],
    )
    transcript = json.loads(response["Body"].read())
    results = transcript.get("results") or {}

    transcripts = results.get("transcripts") or [{}]
    text = transcripts[0].get("transcript", "")
    logger.info(f"Fetched transcript: {len(text)} characters")

    return {
        "transcript": text,
        "speakerLabels": (results.get("speaker_labels") or {}).get("segments", []),
        "alternatives": results.get("alternatives", []),
        "projectId": payload.get("projectId"),
    }


def _s3_image(payload: Dict[str, Any]) -> Dict[str, Any]:
    return {"S3Object": {"Bucket": payload["bucket"], "Name": payload["s3Key"]}}


@pipeline_step("VisionLabels")
def vision_labels(payload: Dict[str, Any]) -> Dict[str, Any]:
    response = aws_client("rekognition").detect_labels(
        Image=_s3_image(payload), MaxLabels=50, MinConfidence=60
    )
    labels = [
        {
            "name": label["Name"],
            "confidence": label.get("Confidence"),
            "categories": [category["Name"] for category in label.get("Categories", [])],
        }
        for label in response.get("Labels", [])
    ]
    logger.info(f"Detected labels: {len(labels)}")
    return {"labels": labels, "projectId": payload.get("projectId"), "sourceKey": payload["s3Key"]}


@pipeline_step("Faces")
def faces(payload: Dict[str, Any]) -> Dict[str, Any]:
    response = aws_client("rekognition").detect_faces(Image=_s3_image(payload), Attributes=["ALL"])

    detected = []
    for face in response.get("FaceDetails", []):
        age = face.get("AgeRange")
        gender = face.get("Gender")
        detected.append({
            "boundingBox": face.get("BoundingBox"),
            "confidence": face.get("Confidence"),
            "emotions": [
                {"type": emotion["Type"], "confidence": emotion.get("Confidence")}
                for emotion in face.get("Emotions", [])
            ],
            "ageRange": {"low": age["Low"], "high": age["High"]} if age else None,
            "gender": {"value": gender["Value"], "confidence": gender.get("Confidence")} if gender else None,
        })
    logger.info(f"Detected faces: {len(detected)}")
    return {"faces": detected, "projectId": payload.get("projectId"), "sourceKey": payload["s3Key"]}


@pipeline_step("ShotDetect")
def shot_detect(payload: Dict[str, Any]) -> Dict[str, Any]:
    # Fixed-length shots; only the image labels come from Rekognition
    response = aws_client("rekognition").detect_labels(
        Image=_s3_image(payload), MaxLabels=20, MinConfidence=70
    )
    top_labels = [
        {"name": label["Name"], "confidence": label.get("Confidence")}
        for label in response.get("Labels", [])[:3]
    ]
    shots = [
        {
            "startTime": i * SHOT_SECONDS,
            "endTime": (i + 1) * SHOT_SECONDS,
            "confidence": 0.85 + random.random() * 0.1,
            "labels": top_labels,
        }
        for i in range(SHOT_COUNT)
    ]
    logger.info(f"Detected shots: {len(shots)}")
    return {"shots": shots, "projectId": payload.get("projectId"), "sourceKey": payload["s3Key"]}


@pipeline_step("Thumbnails")
def thumbnails(payload: Dict[str, Any]) -> Dict[str, Any]:
    s3_key = payload["s3Key"]
    project_id = payload["projectId"]

    keys = []
    for i in range(THUMBNAIL_COUNT):
        timestamp = i * THUMBNAIL_INTERVAL
        key = f"{project_id}/thumbnails/{_stem(s3_key)}_{timestamp}s.jpg"
        keys.append({"key": key, "timestamp": timestamp, "url": f"s3://{settings.THUMBNAILS_BUCKET}/{key}"})
    logger.info(f"Generated thumbnails: {len(keys)}")
    return {"thumbnails": keys, "projectId": project_id, "sourceKey": s3_key}


@pipeline_step("Keyframes")
def keyframes(payload: Dict[str, Any]) -> Dict[str, Any]:
    s3_key = payload["s3Key"]
    project_id = payload["projectId"]

    frames = []
    for i in range(KEYFRAME_COUNT):
        timestamp = i * KEYFRAME_INTERVAL
        key = f"{project_id}/keyframes/{_stem(s3_key)}_{timestamp}s.jpg"
        frames.append({
            "key": key,
            "timestamp": timestamp,
            "url": f"s3://{settings.THUMBNAILS_BUCKET}/{key}",
            "confidence": 0.8 + random.random() * 0.2,
        })
    logger.info(f"Extracted keyframes: {len(frames)}")
    return {"keyframes": frames, "projectId": project_id, "sourceKey": s3_key}


@pipeline_step("MediaConvert")
def mediaconvert(payload: Dict[str, Any]) -> Dict[str, Any]:
    return MediaConvertService().create_proxy_job(payload["s3Key"], payload["bucket"], payload["projectId"])


@pipeline_step("BatchSubmit")
def batch_submit(payload: Dict[str, Any]) -> Dict[str, Any]:
    project_id = payload["projectId"]
    segments = json.dumps(payload.get("segments", []))

    response = aws_client("batch").submit_job(
        jobName=f"embed-segments-{project_id}-{_epoch_ms()}",
        jobQueue=settings.BATCH_JOB_QUEUE,
        jobDefinition=settings.BATCH_JOB_DEFINITION,
        parameters={"projectId": project_id, "segments": segments},
        containerOverrides={
            "environment": [
                {"name": "PROJECT_ID", "value": project_id},
                {"name": "SEGMENTS", "value": segments},
            ]
        },
    )
    logger.info(f"Batch job submitted: {response['jobId']}")
    return {
        "jobId": response["jobId"],
        "jobName": response.get("jobName"),
        "projectId": project_id,
        "status": "SUBMITTED",
    }


def _processed_segments(results: Dict[str, Any], kind: str) -> List[Dict[str, Any]]:
    section = results.get(kind) or {}
    return (section.get("processed") or {}).get("segments") or []


def _emotion_names(face: Dict[str, Any]) -> str:
    emotions = face.get("emotions") or []
    names = [e["type"] if isinstance(e, dict) else str(e) for e in emotions]
    return ", ".join(names) if names else "unknown emotion"


def build_segments(results: Dict[str, Any]) -> List[Dict[str, Any]]:
    """Flattens per-analysis results into one list of text segments to embed."""
    segments = []

    for seg in _processed_segments(results, "transcription"):
        segments.append({
            "start": seg["start_time"],
            "end": seg["end_time"],
            "text": f"{seg['text']} (Speaker: {seg.get('speaker') or 'Unknown'})",
            "content": seg["text"],
            "type": "speech",
            "confidence": seg.get("confidence") or 0.8,
            "speaker_labels": {"speaker": seg.get("speaker")},
        })

    for seg in _processed_segments(results, "vision_labels"):
        text = f"Visual scene: {', '.join(seg.get('labels', []))}"
        segments.append({
            "start": seg["start_time"],
            "end": seg["end_time"],
            "text": text,
            "content": text,
            "type": "visual",
            "confidence": seg.get("confidence") or 0.7,
            "visual_labels": {"labels": seg.get("labels", [])},
        })

    for seg in _processed_segments(results, "faces"):
        text = f"Faces detected: {', '.join(_emotion_names(face) for face in seg.get('faces', []))}"
        segments.append({
            "start": seg["start_time"],
            "end": seg["end_time"],
            "text": text,
            "content": text,
            "type": "faces",
            "confidence": seg.get("confidence") or 0.7,
            "face_data": {"faces": seg.get("faces", [])},
        })

    for seg in _processed_segments(results, "shots"):
        text = f"Shot change: {seg.get('shot_type') or 'transition'} at {seg['start_time']}s"
        segments.append({
            "start": seg["start_time"],
            "end": seg["end_time"],
            "text": text,
            "content": text,
            "type": "shot",
            "confidence": seg.get("confidence") or 0.6,
            "shot_data": {"shot_type": seg.get("shot_type")},
        })

    return segments


@pipeline_step("GenerateEmbeddings")
def generate_embeddings(payload: Dict[str, Any]) -> Dict[str, Any]:
    project_id = payload.get("projectId")
    file_id = payload.get("fileId")
    results = payload.get("aiAnalysisResults")
    if not project_id or not file_id or not results:
        raise ValueError("Missing required parameters: projectId, fileId, or aiAnalysisResults")

    segments = build_segments(results)
    vector_service = VectorService()

    db = SessionLocal()
    try:
        for seg in segments:
            embedded = vector_service.generate_embedding(seg["text"])
            db.add(VideoMoment(
                file_id=file_id,
                project_id=project_id,
                start_time_seconds=seg["start"],
                end_time_seconds=seg["end"],
                content_type=seg["type"],
                transcript_text=seg["content"] if seg["type"] == "speech" else None,
                description=seg["content"],
                confidence_score=seg["confidence"],
                embedding_data=embedded.embedding,
                embedding_model=embedded.model,
                speaker_labels=seg.get("speaker_labels"),
                visual_labels=seg.get("visual_labels"),
                face_data=seg.get("face_data"),
                shot_data=seg.get("shot_data"),
            ))
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()

    invalidate_project(project_id)
    logger.info(f"Generated {len(segments)} segments with embeddings")

    status = StatusManager()
    execution_arn = payload.get("stepFunctionsExecutionArn")
    if execution_arn:
        status.finish_job(execution_arn, "completed")
    status.update_file_status(file_id, "completed", 100)

    return {"projectId": project_id, "fileId": file_id, "segmentsCount": len(segments)}


@pipeline_step("FailJob")
def fail_job(payload: Dict[str, Any]) -> Dict[str, Any]:
    execution_arn = payload["stepFunctionsExecutionArn"]
    message = payload.get("error") or "Processing failed"

    job = StatusManager().finish_job(execution_arn, "failed", error_message=message)
    if job is None:
        raise LookupError(f"Processing job {execution_arn} not found")
    return {"stepFunctionsExecutionArn": execution_arn, "status": "failed", "error": message}


HANDLERS: Dict[str, Callable[[Dict[str, Any]], Dict[str, Any]]] = {
    "init-job": init_job,
    "transcribe": transcribe,
    "fetch-transcript": fetch_transcript,
    "vision-labels": vision_labels,
    "faces": faces,
    "shot-detect": shot_detect,
    "thumbnails": thumbnails,
    "keyframes": keyframes,
    "mediaconvert": mediaconvert,
    "batch-submit": batch_submit,
    "generate-embeddings": generate_embeddings,
    "fail-job": fail_job,
}
