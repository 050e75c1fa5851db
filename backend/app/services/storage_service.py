import os
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from supabase import create_client, Client
from app.core.config import settings

logger = logging.getLogger(__name__)

VIDEO_EXTENSIONS = (".mp4", ".mov", ".mkv")

class StorageService:
    """
    Object storage facade.
    Supabase and S3 hand out presigned URLs; "local" maps keys onto DATA_DIR for development.
    """
    def __init__(self):
        self.provider = settings.STORAGE_PROVIDER
        self.supabase: Optional[Client] = None
        self.s3 = None
        self.default_bucket = settings.RAW_BUCKET
        self.expires_in = settings.PRESIGN_EXPIRES_SECONDS

        if self.provider == "supabase":
            if not settings.SUPABASE_URL or not settings.SUPABASE_KEY:
                logger.error("Supabase credentials missing. Falling back to local storage.")
                self.provider = "local"
            else:
                try:
                    self.supabase = create_client(settings.SUPABASE_URL, settings.SUPABASE_KEY)
                except Exception as e:
                    logger.error(f"Failed to initialize Supabase client: {e}")
                    self.provider = "local"

        elif self.provider == "s3":
            import boto3
            self.s3 = boto3.client("s3", region_name=settings.AWS_REGION or None)

    def _local_path(self, key: str, bucket_name: str) -> str:
        return os.path.join(settings.DATA_DIR, "uploads", bucket_name, key)

    def create_presigned_upload(self, key: str, content_type: str = "application/octet-stream",
                                bucket_name: str = None) -> Dict[str, str]:
        """Returns a URL the browser can PUT the file to directly."""
        bucket = bucket_name or self.default_bucket

        if self.provider == "supabase":
            response = self.supabase.storage.from_(bucket).create_signed_upload_url(key)
            url = response.get("signed_url") or response.get("signedUrl")
        elif self.provider == "s3":
            url = self.s3.generate_presigned_url(
                "put_object",
                Params={"Bucket": bucket, "Key": key, "ContentType": content_type},
                ExpiresIn=self.expires_in,
            )
        else:
            path = self._local_path(key, bucket)
            os.makedirs(os.path.dirname(path), exist_ok=True)
            url = f"file://{path}"

        logger.info(f"Presigned upload for {bucket}/{key}")
        return {"url": url, "key": key, "bucket": bucket}

    def get_signed_url(self, key: str, bucket_name: str = None, expires_in: int = None) -> str:
        bucket = bucket_name or self.default_bucket
        expires = expires_in or self.expires_in

        if self.provider == "supabase":
            response = self.supabase.storage.from_(bucket).create_signed_url(key, expires)
            return response.get("signedURL") or response.get("signedUrl")
        elif self.provider == "s3":
            return self.s3.generate_presigned_url(
                "get_object",
                Params={"Bucket": bucket, "Key": key},
                ExpiresIn=expires,
            )
        else:
            return f"file://{self._local_path(key, bucket)}"

    def list_objects(self, prefix: str, bucket_name: str = None) -> List[Dict[str, Any]]:
        bucket = bucket_name or self.default_bucket

        if self.provider == "supabase":
            folder = prefix.rstrip("/")
            items = self.supabase.storage.from_(bucket).list(folder)
            return [
                {
                    "key": f"{folder}/{item['name']}",
                    "size": (item.get("metadata") or {}).get("size"),
                    "last_modified": item.get("updated_at"),
                }
                for item in items
            ]

        if self.provider == "s3":
            objects = []
            paginator = self.s3.get_paginator("list_objects_v2")
            for page in paginator.paginate(Bucket=bucket, Prefix=prefix):
                for obj in page.get("Contents", []):
                    objects.append({
                        "key": obj["Key"],
                        "size": obj.get("Size"),
                        "last_modified": obj.get("LastModified"),
                    })
            return objects

        root = self._local_path("", bucket)
        target = self._local_path(prefix, bucket)
        objects = []
        if not os.path.isdir(target):
            return objects
        for dirpath, _, filenames in os.walk(target):
            for name in filenames:
                full = os.path.join(dirpath, name)
                stat = os.stat(full)
                objects.append({
                    "key": os.path.relpath(full, root).replace(os.sep, "/"),
                    "size": stat.st_size,
                    "last_modified": datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc),
                })
        return objects

    def list_videos(self, prefix: str, bucket_name: str = None) -> List[Dict[str, Any]]:
        return [
            {**obj, "file_name": obj["key"].split("/")[-1]}
            for obj in self.list_objects(prefix, bucket_name)
            if obj["key"].lower().endswith(VIDEO_EXTENSIONS)
        ]
