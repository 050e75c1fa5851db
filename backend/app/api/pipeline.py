from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse

from app.api.deps import require_pipeline_caller
from app.services.ingestion import HANDLERS
from database.models import User

router = APIRouter(prefix="/pipeline", tags=["pipeline"])


@router.post("/{step}")
async def run_step(step: str, event: Dict[str, Any],
                   caller: Optional[User] = Depends(require_pipeline_caller)):
    """Invokes one ingestion step; the handler's statusCode becomes the HTTP status."""
    handler = HANDLERS.get(step)
    if handler is None:
        raise HTTPException(status_code=404, detail=f"Unknown pipeline step: {step}")

    result = await run_in_threadpool(handler, event)
    return JSONResponse(status_code=result["statusCode"], content=result["body"])
