from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse
from fastapi.encoders import jsonable_encoder
from sqlalchemy.orm import Session

from app.api.deps import server_error
from app.schemas.requests import UserCreate
from app.schemas.responses import UserOut
from database.database import get_db
from database.models import User

router = APIRouter(prefix="/users", tags=["users"])


@router.get("")
def get_user(email: Optional[str] = None, db: Session = Depends(get_db)):
    if not email:
        raise HTTPException(status_code=400, detail="Email is required")
    try:
        user = db.query(User).filter(User.email == email).first()
    except Exception as e:
        raise server_error("Failed to fetch user", e)
    return {"user": UserOut.model_validate(user) if user else None}


@router.post("")
def create_user(payload: UserCreate, db: Session = Depends(get_db)):
    """Idempotent by email: an existing user is returned with 200."""
    if not payload.email or not payload.userType:
        raise HTTPException(status_code=400, detail="Email and user type are required")

    try:
        existing = db.query(User).filter(User.email == payload.email).first()
        if existing is not None:
            return {"user": UserOut.model_validate(existing)}

        user = User(
            email=payload.email,
            name=payload.name or payload.email.split("@")[0],
            user_type=payload.userType,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
    except Exception as e:
        db.rollback()
        raise server_error("Failed to create user", e)

    return JSONResponse(status_code=201, content=jsonable_encoder({"user": UserOut.model_validate(user)}))
