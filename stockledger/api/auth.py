from fastapi import APIRouter, Depends, HTTPException, Response
from pydantic import BaseModel
from sqlalchemy.orm import Session

from stockledger.api.deps import get_current_user, ok
from stockledger.database import get_db
from stockledger.models.user import User
from stockledger.services import auth_service

router = APIRouter(prefix="/auth", tags=["Auth"])


class LoginRequest(BaseModel):
    email: str
    password: str


class UserOut(BaseModel):
    id: str
    email: str
    display_name: str
    role: str
    active: bool = True

    model_config = {"from_attributes": True}


@router.post("/login")
def login(data: LoginRequest, response: Response, db: Session = Depends(get_db)):
    user = auth_service.authenticate(db, data.email, data.password)
    if not user:
        raise HTTPException(401, "Invalid email or password")
    token = auth_service.create_access_token(user.id, user.role)
    response.set_cookie("token", token, httponly=True, samesite="lax", max_age=3600 * 72)
    return ok({"token": token, "user": UserOut.model_validate(user)})


@router.post("/logout")
def logout(response: Response):
    response.delete_cookie("token")
    return {"ok": True}


@router.get("/me")
def me(user: User = Depends(get_current_user)):
    return ok(UserOut.model_validate(user))
