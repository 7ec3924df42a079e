"""
Account operations: registration, login, profile and password management.

Functions take the database (and the media/mail gateways where needed)
explicitly and raise ``errors.AppError`` subclasses; the routers in
``users.py`` turn results into responses and cookies.
"""

import logging
from typing import Optional, Tuple

from pymongo.database import Database
from pymongo.errors import DuplicateKeyError

import config
from database import create_document, get_documents, to_object_id, utcnow
from errors import AuthError, ConflictError, NotFoundError, TokenError, ValidationError
from mailer import Mailer
from media import DEFAULT_AVATAR, MediaGateway
from schemas import ImageRef, User
from security import (
    create_access_token,
    generate_reset_token,
    get_password_hash,
    hash_reset_token,
    verify_password,
)

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 6
# Never sent back to clients
PRIVATE_FIELDS = ("password", "reset_password_token", "reset_password_expire")


def _normalize_email(email: str) -> str:
    return (email or "").strip().lower()


def public_user(user: dict) -> dict:
    return {k: v for k, v in user.items() if k not in PRIVATE_FIELDS}


def _find_user_by_email(db: Database, email: str) -> Optional[dict]:
    users = get_documents(db, "user", {"email": _normalize_email(email)}, limit=1)
    return users[0] if users else None


def find_user_by_id(db: Database, user_id) -> Optional[dict]:
    oid = to_object_id(user_id)
    if oid is None:
        return None
    return db["user"].find_one({"_id": oid})


def _require_user(db: Database, user_id) -> dict:
    user = find_user_by_id(db, user_id)
    if not user:
        raise NotFoundError("User Not Found!")
    return user


def _check_new_password(password: str, confirm_password: str) -> None:
    if len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(f"Password must be up to {MIN_PASSWORD_LENGTH} characters")
    if password != confirm_password:
        raise ValidationError("Password does not match!")


def register(db: Database, name: str, email: str, password: str) -> Tuple[dict, str]:
    if not name or not email or not password:
        raise ValidationError("Please fill in all required fields")
    if len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(f"Password must be up to {MIN_PASSWORD_LENGTH} characters")

    email = _normalize_email(email)
    if _find_user_by_email(db, email):
        raise ConflictError("Email has already been registered")

    user = User(
        name=name.strip(),
        email=email,
        password=get_password_hash(password),
        avatar=ImageRef(**DEFAULT_AVATAR),
    )
    try:
        created = create_document(db, "user", user.model_dump())
    except DuplicateKeyError:
        # Lost a race with a concurrent registration for the same address
        raise ConflictError("Email has already been registered")

    logger.info("Registered user %s", created["_id"])
    token = create_access_token({"sub": str(created["_id"])})
    return public_user(created), token


def login(db: Database, email: str, password: str) -> Tuple[dict, str]:
    if not email or not password:
        raise ValidationError("Please fill in all required fields")

    user = _find_user_by_email(db, email)
    if not user:
        raise NotFoundError("User not found, please signup.")
    if not verify_password(password, user.get("password", "")):
        logger.warning("Failed login for user %s", user["_id"])
        raise AuthError("Invalid email or password")

    token = create_access_token({"sub": str(user["_id"])})
    return public_user(user), token


def get_current_user(db: Database, user_id: str) -> dict:
    return public_user(_require_user(db, user_id))


def update_profile(db: Database, media: MediaGateway, user_id: str, name: Optional[str] = None,
                   bio: Optional[str] = None, avatar: Optional[str] = None) -> dict:
    user = _require_user(db, user_id)

    changes = {}
    if name is not None:
        changes["name"] = name
    if bio is not None:
        changes["bio"] = bio

    if avatar:
        # The old asset goes first; a failed upload leaves the stored pair pointing at it
        old_id = (user.get("avatar") or {}).get("public_id")
        # The placeholder is shared by every new account
        if old_id != DEFAULT_AVATAR["public_id"]:
            media.destroy(old_id)
        uploaded = media.upload_avatar(avatar)
        changes["avatar"] = ImageRef(**uploaded).model_dump()

    changes["updated_at"] = utcnow()
    db["user"].update_one({"_id": user["_id"]}, {"$set": changes})
    return public_user(db["user"].find_one({"_id": user["_id"]}))


def update_password(db: Database, user_id: str, old_password: str, new_password: str,
                    confirm_password: str) -> None:
    user = _require_user(db, user_id)
    if not verify_password(old_password or "", user.get("password", "")):
        raise AuthError("Old password is incorrect!")
    _check_new_password(new_password, confirm_password)

    db["user"].update_one(
        {"_id": user["_id"]},
        {"$set": {"password": get_password_hash(new_password), "updated_at": utcnow()}},
    )
    logger.info("Password changed for user %s", user["_id"])


def reset_email_html(name: str, reset_url: str) -> str:
    return f"""
  <h2>Hello {name}</h2>
  <p>You requested a password reset.</p>
  <p>Please use the url below to reset your password.</p>
  <p>This reset link is valid for only {config.RESET_TOKEN_EXPIRE_MINUTES} minutes.</p>
  <a href="{reset_url}" clicktracking=off>{reset_url}</a>
  <p>Regards...</p>
  <p>Blog Team</p>
  """


def forgot_password(db: Database, mailer: Mailer, email: str) -> None:
    user = _find_user_by_email(db, email)
    if not user:
        raise NotFoundError("User does not exist!")

    token, token_hash, expires_at = generate_reset_token()
    db["user"].update_one(
        {"_id": user["_id"]},
        {"$set": {"reset_password_token": token_hash, "reset_password_expire": expires_at}},
    )

    reset_url = f"{config.FRONTEND_URL}/resetpassword/{token}"
    # A send failure propagates as EmailError; the stored reset state is left in place
    mailer.send(
        subject="Password Reset Request",
        html=reset_email_html(user.get("name", ""), reset_url),
        send_to=user["email"],
        sent_from=config.EMAIL_USER,
    )
    logger.info("Password reset email sent to user %s", user["_id"])


def reset_password(db: Database, token: str, password: str, confirm_password: str) -> dict:
    user = db["user"].find_one({
        "reset_password_token": hash_reset_token(token or ""),
        "reset_password_expire": {"$gt": utcnow()},
    })
    if not user:
        raise TokenError("Reset Password Token is invalid or has expired!")
    _check_new_password(password, confirm_password)

    db["user"].update_one(
        {"_id": user["_id"]},
        {
            "$set": {"password": get_password_hash(password), "updated_at": utcnow()},
            "$unset": {"reset_password_token": "", "reset_password_expire": ""},
        },
    )
    logger.info("Password reset completed for user %s", user["_id"])
    return public_user(db["user"].find_one({"_id": user["_id"]}))
