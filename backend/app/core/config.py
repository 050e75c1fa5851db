import os
from typing import List, Literal, Optional
from pydantic_settings import BaseSettings

ProviderType = Literal["openai", "bedrock", "local"]

class Settings(BaseSettings):
    PROJECT_NAME: str = "Memory Finder"
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    # Path Configuration
    # config.py is in backend/app/core/ => 3 levels up to backend => 4 levels up to root
    BACKEND_DIR: str = os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
    PROJECT_ROOT: str = os.path.dirname(BACKEND_DIR)

    DATA_DIR: str = os.getenv("DATA_DIR", os.path.join(PROJECT_ROOT, "data"))

    # Database
    DATABASE_URL: str = os.getenv("DATABASE_URL", "")
    DB_POOL_SIZE: int = int(os.getenv("DB_POOL_SIZE", "5"))
    DB_ECHO: bool = False

    # Web
    SESSION_SECRET: str = os.getenv("SESSION_SECRET", "memory-finder-dev-secret")
    ALLOWED_ORIGINS: List[str] = ["http://localhost:3000"]
    APP_BASE_URL: str = os.getenv("APP_BASE_URL", "http://localhost:3000")

    # API Keys
    OPENAI_API_KEY: str = os.getenv("OPENAI_API_KEY", "")

    # AWS
    AWS_REGION: str = os.getenv("AWS_REGION", "")
    RAW_BUCKET: str = os.getenv("RAW_BUCKET", "memory-finder-raw")
    ANALYSIS_BUCKET: str = os.getenv("ANALYSIS_BUCKET", "memory-finder-analysis")
    THUMBNAILS_BUCKET: str = os.getenv("THUMBNAILS_BUCKET", "memory-finder-thumbnails")
    PROXIES_BUCKET: str = os.getenv("PROXIES_BUCKET", "memory-finder-proxies")
    COMPILATIONS_BUCKET: str = os.getenv("COMPILATIONS_BUCKET", "memory-finder-compilations")
    MEDIACONVERT_ROLE_ARN: str = os.getenv("MEDIACONVERT_ROLE_ARN", "")
    MEDIACONVERT_ENDPOINT: str = os.getenv("MEDIACONVERT_ENDPOINT", "")
    BATCH_JOB_QUEUE: str = os.getenv("BATCH_JOB_QUEUE", "")
    BATCH_JOB_DEFINITION: str = os.getenv("BATCH_JOB_DEFINITION", "")
    PIPELINE_TOKEN: str = os.getenv("PIPELINE_TOKEN", "")

    # Cloud Storage
    SUPABASE_URL: str = os.getenv("SUPABASE_URL", "")
    SUPABASE_KEY: str = os.getenv("SUPABASE_KEY", "")
    STORAGE_PROVIDER: Literal["local", "supabase", "s3"] = os.getenv("STORAGE_PROVIDER", "local")
    PRESIGN_EXPIRES_SECONDS: int = int(os.getenv("PRESIGN_EXPIRES_SECONDS", "3600"))

    # Embedding / Search
    EMBEDDING_PROVIDER: Optional[ProviderType] = None
    EMBEDDING_MODEL: Optional[str] = None
    EMBEDDING_DIMENSIONS: int = int(os.getenv("EMBEDDING_DIMENSIONS", "1536"))
    EMBEDDING_MAX_CHARS: int = int(os.getenv("EMBEDDING_MAX_CHARS", "8000"))
    LOCAL_MODEL_NAME: str = os.getenv("LOCAL_MODEL_NAME", "sentence-transformers/all-MiniLM-L6-v2")

    SEARCH_LIMIT: int = int(os.getenv("SEARCH_LIMIT", "20"))
    SIMILARITY_THRESHOLD: float = float(os.getenv("SIMILARITY_THRESHOLD", "0.7"))
    COMPILATION_MAX_DURATION: float = float(os.getenv("COMPILATION_MAX_DURATION", "300"))

    # Sharing
    INVITATION_TTL_DAYS: int = int(os.getenv("INVITATION_TTL_DAYS", "30"))
    EMAIL_FROM: str = os.getenv("EMAIL_FROM", "Memory Finder <info@memoryfinder.app>")

    class Config:
        case_sensitive = True
        env_file = ".env"

    def __init__(self, **data):
        super().__init__(**data)
        self._configure_defaults()

    def _configure_defaults(self):
        """
        Configures defaults based on available credentials and hierarchy:
        OpenAI (Priority) -> Bedrock -> Local.
        """
        if not self.DATABASE_URL:
            self.DATABASE_URL = f"sqlite:///{os.path.join(self.DATA_DIR, 'memory_finder.db')}"

        primary_provider: ProviderType = "local"
        if self.OPENAI_API_KEY:
            primary_provider = "openai"
        elif self.AWS_REGION:
            primary_provider = "bedrock"

        default_models = {
            "openai": "text-embedding-3-small",
            "bedrock": "amazon.titan-embed-text-v1",
            "local": self.LOCAL_MODEL_NAME,
        }

        if self.EMBEDDING_PROVIDER is None:
            self.EMBEDDING_PROVIDER = primary_provider
        if self.EMBEDDING_MODEL is None:
            self.EMBEDDING_MODEL = default_models.get(self.EMBEDDING_PROVIDER, self.LOCAL_MODEL_NAME)

settings = Settings()
