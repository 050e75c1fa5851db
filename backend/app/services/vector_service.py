import json
import logging
import math
import random
from dataclasses import dataclass
from typing import List, Optional, Sequence

from sqlalchemy.orm import Session

from app.core.config import settings
from database.models import VideoMoment

logger = logging.getLogger(__name__)


@dataclass
class EmbeddingResult:
    embedding: List[float]
    model: str


@dataclass
class SegmentHit:
    segment_id: str
    file_id: str
    start_time_seconds: float
    end_time_seconds: float
    duration_seconds: float
    content_text: str
    content_type: str
    confidence_score: Optional[float]
    similarity_score: float
    thumbnail_s3_key: Optional[str]
    proxy_s3_key: Optional[str]


class VectorService:
    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super(VectorService, cls).__new__(cls)
            cls._instance._initialized = False
        return cls._instance

    def __init__(self):
        if self._initialized:
            return

        self.provider = settings.EMBEDDING_PROVIDER
        self.model_name = settings.EMBEDDING_MODEL
        self.dimensions = settings.EMBEDDING_DIMENSIONS
        self.max_chars = settings.EMBEDDING_MAX_CHARS

        logger.info(f"Initializing VectorService. Provider: {self.provider}, Model: {self.model_name}")

        self.local_model = None
        self.openai_client = None
        self.bedrock_client = None

        if self.provider == "openai":
            from openai import OpenAI
            if settings.OPENAI_API_KEY:
                self.openai_client = OpenAI(api_key=settings.OPENAI_API_KEY)
            else:
                logger.warning("OpenAI provider selected but no key. Embeddings will use the fallback vector.")

        elif self.provider == "bedrock":
            import boto3
            self.bedrock_client = boto3.client("bedrock-runtime", region_name=settings.AWS_REGION or None)

        self._initialized = True

    @classmethod
    def reset(cls):
        cls._instance = None

    def _load_local_model(self):
        if self.local_model is None:
            from sentence_transformers import SentenceTransformer
            logger.info(f"Loading local embedding model: {self.model_name}")
            self.local_model = SentenceTransformer(self.model_name)
        return self.local_model

    def _embed_openai(self, text: str) -> List[float]:
        if self.openai_client is None:
            raise RuntimeError("OpenAI API key not configured")
        response = self.openai_client.embeddings.create(
            input=text,
            model=self.model_name,
            encoding_format="float",
        )
        return response.data[0].embedding

    def _embed_bedrock(self, text: str) -> List[float]:
        response = self.bedrock_client.invoke_model(
            modelId=self.model_name,
            contentType="application/json",
            accept="application/json",
            body=json.dumps({"inputText": text}),
        )
        body = json.loads(response["body"].read())
        return body["embedding"]

    def _embed_local(self, text: str) -> List[float]:
        return self._load_local_model().encode(text).tolist()

    def _fallback_vector(self) -> List[float]:
        return [random.uniform(-1.0, 1.0) for _ in range(self.dimensions)]

    def generate_embedding(self, text: str) -> EmbeddingResult:
        """
        Embeds `text` with the configured provider.

        Input longer than EMBEDDING_MAX_CHARS is truncated. If the provider
        call fails, a uniformly random vector of the configured length is
        returned instead and the model is reported as "<provider>-fallback".
        """
        if not text or not text.strip():
            raise ValueError("Text cannot be empty")

        truncated = text[:self.max_chars]
        logger.debug(f"Generating embedding for text ({len(truncated)} chars) using {self.provider}")

        try:
            if self.provider == "openai":
                embedding = self._embed_openai(truncated)
            elif self.provider == "bedrock":
                embedding = self._embed_bedrock(truncated)
            else:
                embedding = self._embed_local(truncated)
            return EmbeddingResult(embedding=list(embedding), model=self.model_name)
        except Exception as e:
            logger.error(f"Embedding generation failed ({self.provider}): {e}")
            return EmbeddingResult(embedding=self._fallback_vector(), model=f"{self.provider}-fallback")

    def generate_embeddings_batch(self, texts: Sequence[str]) -> List[EmbeddingResult]:
        # One remote call per text, in order
        logger.info(f"Generating embeddings for {len(texts)} texts using {self.provider}")
        return [self.generate_embedding(text) for text in texts]


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    if len(a) != len(b):
        raise ValueError("Embeddings must have the same length")

    dot_product = 0.0
    norm_a = 0.0
    norm_b = 0.0
    for x, y in zip(a, b):
        dot_product += x * y
        norm_a += x * x
        norm_b += y * y

    if norm_a == 0 or norm_b == 0:
        return 0.0

    return dot_product / (math.sqrt(norm_a) * math.sqrt(norm_b))


def search_segments(
    db: Session,
    query_embedding: Sequence[float],
    project_id: str,
    similarity_threshold: float = 0.7,
    max_results: int = 20,
) -> List[SegmentHit]:
    """
    Scores every embedded segment of a project against the query vector.

    Keeps hits scoring strictly above `similarity_threshold`, ordered by
    descending similarity. `max_results` is applied after the full sort.
    """
    moments = (
        db.query(VideoMoment)
        .filter(VideoMoment.project_id == project_id)
        .filter(VideoMoment.embedding_data.isnot(None))
        .all()
    )

    hits: List[SegmentHit] = []
    for moment in moments:
        embedding = moment.embedding_data
        if not embedding:
            continue
        if len(embedding) != len(query_embedding):
            logger.warning(
                f"Skipping segment {moment.id}: embedding has {len(embedding)} dims, query has {len(query_embedding)}"
            )
            continue

        similarity = cosine_similarity(embedding, query_embedding)
        if similarity <= similarity_threshold:
            continue

        duration = moment.duration_seconds
        if duration is None:
            duration = moment.end_time_seconds - moment.start_time_seconds

        hits.append(SegmentHit(
            segment_id=moment.id,
            file_id=moment.file_id,
            start_time_seconds=moment.start_time_seconds,
            end_time_seconds=moment.end_time_seconds,
            duration_seconds=duration,
            content_text=moment.transcript_text or moment.description or "",
            content_type=moment.content_type or "speech",
            confidence_score=moment.confidence_score,
            similarity_score=similarity,
            thumbnail_s3_key=moment.thumbnail_s3_key,
            proxy_s3_key=moment.proxy_s3_key,
        ))

    hits.sort(key=lambda hit: hit.similarity_score, reverse=True)
    return hits[:max_results]
