# skillshare/routes/feedback_routes.py
import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from skillshare.auth.auth_utils import get_current_user
from skillshare.database import crud
from skillshare.database.db import get_db
from skillshare.database.models import User
from skillshare.schemas import FeedbackCreate
from skillshare.services.reputation import record_feedback

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("", status_code=status.HTTP_201_CREATED)
def add_feedback(
    feedback: FeedbackCreate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    logger.info(
        f"[FEEDBACK] Submission received from {current_user.id} for {feedback.to_user_id}. Rating: {feedback.rating}"
    )
    if feedback.to_user_id == current_user.id:
        raise HTTPException(status_code=400, detail="You cannot rate yourself")

    target = crud.get_user(db, feedback.to_user_id)
    if not target:
        raise HTTPException(status_code=404, detail="User not found")

    try:
        record = record_feedback(
            db, current_user.id, target, feedback.rating, feedback.comment, feedback.session_id
        )
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"[FEEDBACK_ERROR] {str(e)}")
        raise HTTPException(status_code=500, detail="Server error")

    return {
        "message": "Feedback added",
        "feedback_id": record.id,
        "rating": target.rating,
        "total_ratings": target.total_ratings,
    }
