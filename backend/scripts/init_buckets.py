import sys
from pathlib import Path

from dotenv import load_dotenv

# Add backend directory to path so we can import app modules
backend_path = Path(__file__).resolve().parent.parent
sys.path.append(str(backend_path))
load_dotenv(backend_path / ".env")

from app.core.config import settings


def bucket_names():
    return [
        settings.RAW_BUCKET,
        settings.ANALYSIS_BUCKET,
        settings.THUMBNAILS_BUCKET,
        settings.PROXIES_BUCKET,
        settings.COMPILATIONS_BUCKET,
    ]


def init_supabase_buckets():
    from supabase import create_client

    print(f"Connecting to Supabase: {settings.SUPABASE_URL}")
    if not settings.SUPABASE_KEY:
        print("Error: SUPABASE_KEY is missing!")
        return

    supabase = create_client(settings.SUPABASE_URL, settings.SUPABASE_KEY)
    existing = {b.name for b in supabase.storage.list_buckets()}
    print(f"Existing buckets: {sorted(existing)}")

    for bucket in bucket_names():
        if bucket in existing:
            print(f"Bucket '{bucket}' already exists.")
            continue
        # Compilations are served by public URL, everything else is signed
        public = bucket == settings.COMPILATIONS_BUCKET
        supabase.storage.create_bucket(bucket, options={"public": public})
        print(f"Created bucket: {bucket}")


def init_s3_buckets():
    import boto3

    region = settings.AWS_REGION or "us-east-2"
    s3 = boto3.client("s3", region_name=region)
    existing = {b["Name"] for b in s3.list_buckets().get("Buckets", [])}

    for bucket in bucket_names():
        if bucket in existing:
            print(f"Bucket '{bucket}' already exists.")
            continue
        kwargs = {"Bucket": bucket}
        if region != "us-east-1":
            kwargs["CreateBucketConfiguration"] = {"LocationConstraint": region}
        s3.create_bucket(**kwargs)
        print(f"Created bucket: {bucket}")


def init_buckets():
    if settings.STORAGE_PROVIDER == "supabase":
        init_supabase_buckets()
    elif settings.STORAGE_PROVIDER == "s3":
        init_s3_buckets()
    else:
        print(f"Local storage: files live under {settings.DATA_DIR}/uploads, nothing to create.")


if __name__ == "__main__":
    init_buckets()
