from fastapi import APIRouter

from app.api import analytics, auth, compilation, invitations, pipeline, processing, projects, search, uploads, users
from app.core.config import settings

api_router = APIRouter()

api_router.include_router(auth.router)
api_router.include_router(users.router)
api_router.include_router(projects.router)
api_router.include_router(invitations.router)
api_router.include_router(uploads.router)
api_router.include_router(search.router)
api_router.include_router(compilation.router)
api_router.include_router(processing.router)
api_router.include_router(analytics.router)
api_router.include_router(pipeline.router)


@api_router.get("/health")
def health():
    return {"status": "ok", "service": settings.PROJECT_NAME}
