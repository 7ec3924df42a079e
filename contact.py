import html
import logging

from fastapi import APIRouter, Depends
from pymongo.database import Database

import accounts
import config
from database import get_db
from errors import EmailError, ValidationError
from mailer import Mailer, get_mailer
from schemas import ContactRequest
from security import get_current_user_id

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/contact")


@router.post("")
def contact_us(
    payload: ContactRequest,
    user_id: str = Depends(get_current_user_id),
    db: Database = Depends(get_db),
    mailer: Mailer = Depends(get_mailer),
):
    """Forward a message from a signed-in user to the site mailbox."""
    if not payload.subject.strip() or not payload.message.strip():
        raise ValidationError("Please add subject and message")
    user = accounts.get_current_user(db, user_id)
    if not config.EMAIL_USER:
        raise EmailError("Contact mailbox is not configured")

    mailer.send(
        subject=payload.subject,
        html=f"<p>{html.escape(payload.message)}</p><p>From: {html.escape(user['email'])}</p>",
        send_to=config.EMAIL_USER,
        sent_from=config.EMAIL_USER,
        reply_to=user["email"],
    )
    logger.info("Contact message forwarded for user %s", user_id)
    return {"success": True, "message": "Email Sent"}
