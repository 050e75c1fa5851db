import hmac
import logging
from typing import Optional

from fastapi import Depends, HTTPException, Request
from sqlalchemy.orm import Session

from app.core.config import settings
from database.database import get_db
from database.models import Project, User

logger = logging.getLogger(__name__)

SESSION_USER_KEY = "user_id"
PIPELINE_TOKEN_HEADER = "X-Pipeline-Token"


def get_current_user(request: Request, db: Session = Depends(get_db)) -> User:
    """Resolves the signed-in user from the session cookie, or 401."""
    user_id = request.session.get(SESSION_USER_KEY)
    if not user_id:
        raise HTTPException(status_code=401, detail="Unauthorized")

    user = db.get(User, user_id)
    if user is None:
        request.session.pop(SESSION_USER_KEY, None)
        raise HTTPException(status_code=401, detail="Unauthorized")
    return user


def require_pipeline_caller(request: Request, db: Session = Depends(get_db)) -> Optional[User]:
    """
    Pipeline steps may be called by a signed-in user or by the orchestrator
    presenting PIPELINE_TOKEN in the X-Pipeline-Token header.
    """
    token = request.headers.get(PIPELINE_TOKEN_HEADER)
    if settings.PIPELINE_TOKEN and token and hmac.compare_digest(token, settings.PIPELINE_TOKEN):
        return None
    return get_current_user(request, db)


def server_error(summary: str, exc: Exception) -> HTTPException:
    logger.exception(f"{summary}: {exc}")
    return HTTPException(status_code=500, detail={"error": summary, "details": str(exc)})


def can_view_project(project: Project, user: User) -> bool:
    return user.id in (project.videographer_id, project.couple_id)
