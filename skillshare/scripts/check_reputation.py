"""
Compare a user's stored reputation with the value recomputed from their feedback.

Run with:
    python -m skillshare.scripts.check_reputation <username> [--fix]
"""
import logging

from skillshare.database import crud
from skillshare.database.db import Base, SessionLocal, engine
from skillshare.services.reputation import recompute_rating

logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)


def check_reputation(db, username: str, fix: bool = False):
    """Returns a report dict, or None if the user does not exist."""
    user = crud.get_user_by_username(db, username)
    if user is None:
        return None

    stored_rating, stored_total = user.rating, user.total_ratings
    feedbacks = crud.list_feedback_for_user(db, user.id)
    calculated = sum(f.rating for f in feedbacks) / len(feedbacks) if feedbacks else 0.0

    report = {
        "username": user.username,
        "rating": stored_rating,
        "total_ratings": stored_total,
        "sessions_completed": user.sessions_completed,
        "feedback_count": len(feedbacks),
        "calculated_average": calculated,
        "in_sync": stored_total == len(feedbacks) and abs(stored_rating - calculated) < 1e-9,
    }

    if fix and not report["in_sync"]:
        recompute_rating(db, user)
        db.commit()
        report["fixed"] = True
    return report


def main():
    import argparse

    parser = argparse.ArgumentParser(description="Check a user's reputation against their feedback records")
    parser.add_argument("username", help="Username to inspect")
    parser.add_argument("--fix", action="store_true", help="Write the recomputed rating back if it drifted")
    args = parser.parse_args()

    Base.metadata.create_all(bind=engine)
    with SessionLocal() as db:
        report = check_reputation(db, args.username, fix=args.fix)

    if report is None:
        logger.error(f"User {args.username} not found")
        raise SystemExit(1)

    logger.info(
        f"User stats: rating={report['rating']} total_ratings={report['total_ratings']} "
        f"sessions_completed={report['sessions_completed']}"
    )
    logger.info(f"Feedbacks received: {report['feedback_count']}")
    logger.info(f"Calculated average: {report['calculated_average']}")
    if report.get("fixed"):
        logger.info("Stored rating was out of sync and has been rewritten")
    elif not report["in_sync"]:
        logger.warning("Stored rating is out of sync; rerun with --fix to repair it")


if __name__ == "__main__":
    main()
