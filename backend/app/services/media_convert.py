import logging
import os
from typing import Any, Dict, List

import boto3

from app.core.config import settings

logger = logging.getLogger(__name__)

AUDIO_AAC_STEREO = {
    "Codec": "AAC",
    "AacSettings": {
        "Bitrate": 128000,
        "CodingMode": "CODING_MODE_2_0",
        "SampleRate": 48000,
    },
}

JOB_STATUS_MAP = {
    "SUBMITTED": {"status": "processing", "progress": 50},
    "PROGRESSING": {"status": "processing", "progress": 50},
    "COMPLETE": {"status": "completed", "progress": 100},
    "ERROR": {"status": "failed", "progress": 0, "error": "Job failed or was canceled"},
    "CANCELED": {"status": "failed", "progress": 0, "error": "Job failed or was canceled"},
}


def _strip_extension(key: str) -> str:
    return os.path.splitext(key)[0]


def _seconds_to_timecode(seconds: float, fps: int = 30) -> str:
    total_frames = int(round(seconds * fps))
    frames = total_frames % fps
    total_seconds = total_frames // fps
    return f"{total_seconds // 3600:02d}:{(total_seconds // 60) % 60:02d}:{total_seconds % 60:02d}:{frames:02d}"


class MediaConvertService:
    def __init__(self, client=None):
        if client is None:
            kwargs = {"region_name": settings.AWS_REGION or None}
            if settings.MEDIACONVERT_ENDPOINT:
                kwargs["endpoint_url"] = settings.MEDIACONVERT_ENDPOINT
            client = boto3.client("mediaconvert", **kwargs)
        self.client = client
        self.role_arn = settings.MEDIACONVERT_ROLE_ARN

    def public_url(self, key: str) -> str:
        region = settings.AWS_REGION or "us-east-2"
        return f"https://{settings.COMPILATIONS_BUCKET}.s3.{region}.amazonaws.com/{key}"

    def create_proxy_job(self, s3_key: str, bucket: str, project_id: str) -> Dict[str, Any]:
        """Submits a 720p H.264 proxy rendition of an uploaded file."""
        job_settings = {
            "Inputs": [{
                "FileInput": f"s3://{bucket}/{s3_key}",
                "AudioSelectors": {"Audio Selector 1": {"DefaultSelection": "DEFAULT"}},
                "VideoSelector": {"ColorSpace": "FOLLOW"},
            }],
            "OutputGroups": [{
                "Name": "Proxy Group",
                "OutputGroupSettings": {
                    "Type": "FILE_GROUP_SETTINGS",
                    "FileGroupSettings": {
                        "Destination": f"s3://{settings.PROXIES_BUCKET}/{project_id}/proxies/",
                    },
                },
                "Outputs": [{
                    "NameModifier": "_proxy",
                    "ContainerSettings": {"Container": "MP4"},
                    "VideoDescription": {
                        "Width": 1280,
                        "Height": 720,
                        "CodecSettings": {
                            "Codec": "H_264",
                            "H264Settings": {
                                "RateControlMode": "QVBR",
                                "QvbrSettings": {"QvbrQualityLevel": 7},
                                "MaxBitrate": 2000000,
                                "FramerateControl": "INITIALIZE_FROM_SOURCE",
                            },
                        },
                    },
                    "AudioDescriptions": [{"CodecSettings": AUDIO_AAC_STEREO}],
                }],
            }],
        }
        response = self.client.create_job(Role=self.role_arn, Settings=job_settings)
        job = response["Job"]
        logger.info(f"MediaConvert proxy job created: {job['Id']}")
        return {
            "jobId": job["Id"],
            "status": job.get("Status"),
            "projectId": project_id,
            "proxyKey": f"{project_id}/proxies/{_strip_extension(s3_key)}_proxy.mp4",
        }

    def create_compilation_job(self, compilation_id: str, moments: List[Dict[str, Any]]) -> Dict[str, Any]:
        """
        Concatenates the clipped moments, in chronological order, into one MP4.

        Each moment dict carries s3Key, startTime and endTime.
        """
        output_key = f"compilations/{compilation_id}.mp4"
        ordered = sorted(moments, key=lambda m: m["startTime"])

        inputs = []
        for moment in ordered:
            inputs.append({
                "FileInput": f"s3://{settings.RAW_BUCKET}/{moment['s3Key']}",
                "TimecodeSource": "ZEROBASED",
                "InputClippings": [{
                    "StartTimecode": _seconds_to_timecode(moment["startTime"]),
                    "EndTimecode": _seconds_to_timecode(moment["endTime"]),
                }],
                "AudioSelectors": {"Audio Selector 1": {"DefaultSelection": "DEFAULT"}},
            })

        job_settings = {
            "Inputs": inputs,
            "TimecodeConfig": {"Source": "ZEROBASED"},
            "OutputGroups": [{
                "Name": "File Group",
                "OutputGroupSettings": {
                    "Type": "FILE_GROUP_SETTINGS",
                    "FileGroupSettings": {
                        "Destination": f"s3://{settings.COMPILATIONS_BUCKET}/compilations/{compilation_id}",
                    },
                },
                "Outputs": [{
                    "ContainerSettings": {
                        "Container": "MP4",
                        "Mp4Settings": {"MoovPlacement": "PROGRESSIVE_DOWNLOAD"},
                    },
                    "VideoDescription": {
                        "Width": 1920,
                        "Height": 1080,
                        "CodecSettings": {
                            "Codec": "H_264",
                            "H264Settings": {
                                "RateControlMode": "QVBR",
                                "MaxBitrate": 4000000,
                                "SceneChangeDetect": "TRANSITION_DETECTION",
                            },
                        },
                    },
                    "AudioDescriptions": [{
                        "CodecSettings": AUDIO_AAC_STEREO,
                        "AudioSourceName": "Audio Selector 1",
                    }],
                }],
            }],
        }

        response = self.client.create_job(Role=self.role_arn, Settings=job_settings)
        job_id = response["Job"]["Id"]
        logger.info(f"MediaConvert compilation job {job_id} created for {len(ordered)} moments -> {output_key}")
        url = self.public_url(output_key)
        return {"jobId": job_id, "outputS3Key": output_key, "streamingUrl": url, "downloadUrl": url}

    def get_job_status(self, job_id: str) -> str:
        response = self.client.get_job(Id=job_id)
        return response["Job"]["Status"]

    def check_compilation_status(self, job_id: str) -> Dict[str, Any]:
        try:
            job_status = self.get_job_status(job_id)
        except Exception as e:
            logger.error(f"Failed to check MediaConvert job {job_id}: {e}")
            return {"status": "error", "progress": 0, "error": str(e)}
        return dict(JOB_STATUS_MAP.get(job_status, {"status": "unknown", "progress": 0}))
