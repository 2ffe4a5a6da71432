# skillshare/routes/chat_routes.py
import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from skillshare.auth.auth_utils import get_current_user
from skillshare.database import crud
from skillshare.database.db import get_db
from skillshare.database.models import User
from skillshare.schemas import BulkDeleteRequest, BulkDeleteResult, ChatOut, MessageOut

router = APIRouter()
logger = logging.getLogger(__name__)


def _chat_for_participant(db: Session, chat_id: int, user: User):
    chat = crud.get_chat(db, chat_id)
    if not chat:
        raise HTTPException(status_code=404, detail="Chat not found")
    if not chat.has_participant(user.id):
        raise HTTPException(status_code=403, detail="Not a participant of this chat")
    return chat


@router.get("", response_model=List[ChatOut])
def list_chats(current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    """All chats of the current user, most recently active first."""
    return crud.list_chats_for_user(db, current_user.id)


@router.get("/{chat_id}/info", response_model=ChatOut)
def chat_info(chat_id: int, current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return _chat_for_participant(db, chat_id, current_user)


@router.get("/{chat_id}", response_model=List[MessageOut])
def chat_messages(chat_id: int, current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    _chat_for_participant(db, chat_id, current_user)
    return crud.list_messages(db, chat_id)


@router.delete("/messages/{message_id}")
def delete_message(message_id: int, current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    message = crud.get_message(db, message_id)
    if not message:
        raise HTTPException(status_code=404, detail="Message not found")

    # Ownership follows the account id so a username change keeps it
    if message.sender_id != current_user.id:
        raise HTTPException(status_code=403, detail="Unauthorized")

    try:
        crud.delete_message(db, message)
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Failed to delete message {message_id}: {str(e)}")
        raise HTTPException(status_code=500, detail="Server error")
    return {"message": "Message deleted"}


@router.post("/messages/bulk-delete", response_model=BulkDeleteResult)
def bulk_delete_messages(
    request: BulkDeleteRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    messages = crud.get_messages(db, request.message_ids)
    owned_ids = [m.id for m in messages if m.sender_id == current_user.id]
    if not owned_ids:
        raise HTTPException(status_code=403, detail="Unauthorized or no valid messages to delete")

    try:
        deleted = crud.delete_messages(db, owned_ids)
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Bulk delete failed for user {current_user.id}: {str(e)}")
        raise HTTPException(status_code=500, detail="Server error")

    logger.info(f"[CHAT] {current_user.username} deleted {deleted} messages")
    return {"message": "Messages deleted", "deleted_count": deleted, "deleted_ids": owned_ids}
