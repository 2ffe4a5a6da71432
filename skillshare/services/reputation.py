# skillshare/services/reputation.py
import logging

from sqlalchemy.orm import Session

from skillshare.database import crud
from skillshare.database.models import Feedback, User

logger = logging.getLogger(__name__)


def recompute_rating(db: Session, user: User) -> User:
    """Sets rating to the plain mean of every rating the user ever received."""
    average, count = crud.feedback_stats(db, user.id)
    user.rating = average
    user.total_ratings = count
    return user


def record_feedback(
    db: Session,
    from_user_id: int,
    to_user: User,
    rating: int,
    comment: str,
    session_id: str,
) -> Feedback:
    """Stores a feedback record and refreshes the target's reputation in the same commit."""
    feedback = crud.create_feedback(db, from_user_id, to_user.id, rating, comment, session_id)
    recompute_rating(db, to_user)
    db.commit()
    db.refresh(feedback)
    logger.info(
        f"[FEEDBACK] {from_user_id} rated {to_user.id} {rating}/5; "
        f"new average {to_user.rating:.2f} over {to_user.total_ratings} ratings"
    )
    return feedback
