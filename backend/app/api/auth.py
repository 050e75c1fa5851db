from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from app.api.deps import SESSION_USER_KEY, get_current_user, server_error
from app.schemas.requests import SessionLogin
from app.schemas.responses import UserOut
from database.database import get_db
from database.models import User

router = APIRouter(prefix="/auth", tags=["auth"])

USER_TYPES = ("videographer", "couple")


@router.post("/session")
def create_session(payload: SessionLogin, request: Request, db: Session = Depends(get_db)):
    """
    Credentials-free sign in: finds or creates the user by email and
    stores its id in the signed session cookie.
    """
    if not payload.email:
        raise HTTPException(status_code=400, detail="Email is required")
    if payload.userType and payload.userType not in USER_TYPES:
        raise HTTPException(status_code=400, detail="Invalid user type")

    try:
        user = db.query(User).filter(User.email == payload.email).first()
        if user is None:
            user = User(
                email=payload.email,
                name=payload.name or payload.email.split("@")[0],
                user_type=payload.userType or "videographer",
            )
            db.add(user)
            db.commit()
            db.refresh(user)
    except Exception as e:
        db.rollback()
        raise server_error("Failed to sign in", e)

    request.session[SESSION_USER_KEY] = user.id
    return {"user": UserOut.model_validate(user)}


@router.get("/session")
def read_session(user: User = Depends(get_current_user)):
    return {"user": UserOut.model_validate(user)}


@router.delete("/session")
def delete_session(request: Request):
    request.session.clear()
    return {"success": True}
