from fastapi import APIRouter, Depends, Response, status
from pymongo.database import Database

import accounts
from database import get_db, serialize
from mailer import Mailer, get_mailer
from media import MediaGateway, get_media
from schemas import (
    ForgotPasswordRequest,
    LoginRequest,
    RegisterRequest,
    ResetPasswordRequest,
    UpdatePasswordRequest,
    UpdateProfileRequest,
)
from security import clear_session_cookie, get_current_user_id, set_session_cookie

router = APIRouter(prefix="/users")


@router.post("/register", status_code=status.HTTP_201_CREATED)
def register(payload: RegisterRequest, response: Response, db: Database = Depends(get_db)):
    user, token = accounts.register(db, payload.name, payload.email, payload.password)
    set_session_cookie(response, token)
    return {"success": True, "user": serialize(user), "token": token}


@router.post("/login")
def login(payload: LoginRequest, response: Response, db: Database = Depends(get_db)):
    user, token = accounts.login(db, payload.email, payload.password)
    set_session_cookie(response, token)
    return {"success": True, "user": serialize(user), "token": token}


@router.get("/logout")
def logout(response: Response):
    clear_session_cookie(response)
    return {"success": True, "message": "Successfully Logged Out."}


@router.get("/getuser")
def get_user(user_id: str = Depends(get_current_user_id), db: Database = Depends(get_db)):
    return {"success": True, "user": serialize(accounts.get_current_user(db, user_id))}


@router.put("/updateprofile", status_code=status.HTTP_201_CREATED)
def update_profile(
    payload: UpdateProfileRequest,
    user_id: str = Depends(get_current_user_id),
    db: Database = Depends(get_db),
    media: MediaGateway = Depends(get_media),
):
    user = accounts.update_profile(db, media, user_id, payload.name, payload.bio, payload.avatar)
    return {"success": True, "user": serialize(user)}


@router.patch("/updatepassword")
def update_password(
    payload: UpdatePasswordRequest,
    user_id: str = Depends(get_current_user_id),
    db: Database = Depends(get_db),
):
    accounts.update_password(db, user_id, payload.old_password, payload.new_password, payload.confirm_password)
    return {"success": True, "message": "Password changed successfully."}


@router.post("/forgotpassword")
def forgot_password(
    payload: ForgotPasswordRequest,
    db: Database = Depends(get_db),
    mailer: Mailer = Depends(get_mailer),
):
    accounts.forgot_password(db, mailer, payload.email)
    return {"success": True, "message": "Reset Email Sent."}


@router.put("/resetpassword/{token}")
def reset_password(token: str, payload: ResetPasswordRequest, db: Database = Depends(get_db)):
    user = accounts.reset_password(db, token, payload.password, payload.confirm_password)
    return {"success": True, "user": serialize(user)}
