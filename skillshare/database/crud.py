# skillshare/database/crud.py
# DB logic: users, presence, chats, messages, feedback
from datetime import datetime
from typing import Iterable, List, Optional

from sqlalchemy import func, or_, update
from sqlalchemy.orm import Session

from skillshare.database.models import Chat, Feedback, Message, User


# --- Users ---

def get_user(db: Session, user_id: int) -> Optional[User]:
    return db.get(User, user_id)


def get_user_by_username(db: Session, username: str):
    """Retrieves a user by their username."""
    return db.query(User).filter(User.username == username).first()


def get_user_by_email(db: Session, email: str):
    return db.query(User).filter(User.email == email).first()


def create_user(
    db: Session,
    username: str,
    email: str,
    hashed_password: str,
    skills_teach: Optional[List[str]] = None,
    skills_learn: Optional[List[str]] = None,
):
    """Creates a new user. The password must already be hashed."""
    db_user = User(
        username=username,
        email=email,
        hashed_password=hashed_password,
        skills_teach=list(skills_teach or []),
        skills_learn=list(skills_learn or []),
    )
    db.add(db_user)
    db.commit()
    db.refresh(db_user)
    return db_user


def update_profile(
    db: Session,
    user: User,
    username: Optional[str] = None,
    skills_teach: Optional[List[str]] = None,
    skills_learn: Optional[List[str]] = None,
):
    if username:
        user.username = username
    if skills_teach is not None:
        user.skills_teach = list(skills_teach)
    if skills_learn is not None:
        user.skills_learn = list(skills_learn)
    db.commit()
    db.refresh(user)
    return user


def list_other_users(db: Session, user_id: int) -> List[User]:
    """Everyone except the given user, best rated first."""
    return db.query(User).filter(User.id != user_id).order_by(User.rating.desc(), User.id).all()


def list_online_users(db: Session, exclude_user_id: Optional[int] = None) -> List[User]:
    """Users that are online and have a live connection."""
    query = db.query(User).filter(User.is_online.is_(True), User.connection_id.isnot(None))
    if exclude_user_id is not None:
        query = query.filter(User.id != exclude_user_id)
    return query.order_by(User.id).all()


# --- Presence ---

def set_online(db: Session, user_id: int, connection_id: str) -> Optional[User]:
    user = get_user(db, user_id)
    if user is None:
        return None
    user.is_online = True
    user.connection_id = connection_id
    db.commit()
    db.refresh(user)
    return user


def set_offline_by_connection(db: Session, connection_id: str) -> Optional[User]:
    """Clears presence for whichever user currently owns this connection id."""
    user = db.query(User).filter(User.connection_id == connection_id).first()
    if user is None:
        return None
    user.is_online = False
    user.connection_id = None
    db.commit()
    db.refresh(user)
    return user


# --- Chats ---

def _pair(user_a: int, user_b: int):
    return (user_a, user_b) if user_a < user_b else (user_b, user_a)


def get_chat(db: Session, chat_id: int) -> Optional[Chat]:
    return db.get(Chat, chat_id)


def find_chat_between(db: Session, user_a: int, user_b: int) -> Optional[Chat]:
    low, high = _pair(user_a, user_b)
    return db.query(Chat).filter(Chat.user_low_id == low, Chat.user_high_id == high).first()


def find_or_create_chat(db: Session, user_a: int, user_b: int) -> Chat:
    """Returns the chat for this pair, creating it on first contact."""
    if user_a == user_b:
        raise ValueError("A chat needs two different users")
    chat = find_chat_between(db, user_a, user_b)
    if chat:
        return chat
    low, high = _pair(user_a, user_b)
    chat = Chat(user_low_id=low, user_high_id=high)
    db.add(chat)
    db.commit()
    db.refresh(chat)
    return chat


def list_chats_for_user(db: Session, user_id: int) -> List[Chat]:
    return (
        db.query(Chat)
        .filter(or_(Chat.user_low_id == user_id, Chat.user_high_id == user_id))
        .order_by(Chat.updated_at.desc(), Chat.id.desc())
        .all()
    )


def complete_chat(db: Session, chat_id: int) -> bool:
    """
    Marks a chat completed and credits both participants with a session.
    Returns False when the chat is unknown or was already completed.
    Both counters and the flag are written in one commit.
    """
    chat = get_chat(db, chat_id)
    if chat is None or chat.is_completed:
        return False
    db.execute(
        update(User)
        .where(User.id.in_(chat.participant_ids))
        .values(sessions_completed=User.sessions_completed + 1)
        .execution_options(synchronize_session=False)
    )
    chat.is_completed = True
    db.commit()
    return True


# --- Messages ---

def save_message(db: Session, chat: Chat, sender: User, content: str) -> Message:
    """Stores a message and bumps the chat's preview and activity time."""
    message = Message(chat_id=chat.id, sender_id=sender.id, sender=sender.username, content=content)
    db.add(message)
    chat.last_message = content
    chat.updated_at = datetime.utcnow()
    db.commit()
    db.refresh(message)
    return message


def list_messages(db: Session, chat_id: int) -> List[Message]:
    return (
        db.query(Message)
        .filter(Message.chat_id == chat_id)
        .order_by(Message.created_at, Message.id)
        .all()
    )


def get_message(db: Session, message_id: int) -> Optional[Message]:
    return db.get(Message, message_id)


def delete_message(db: Session, message: Message) -> None:
    db.delete(message)
    db.commit()


def get_messages(db: Session, message_ids: Iterable[int]) -> List[Message]:
    ids = list(message_ids)
    if not ids:
        return []
    return db.query(Message).filter(Message.id.in_(ids)).all()


def delete_messages(db: Session, message_ids: Iterable[int]) -> int:
    ids = list(message_ids)
    if not ids:
        return 0
    deleted = (
        db.query(Message)
        .filter(Message.id.in_(ids))
        .delete(synchronize_session=False)
    )
    db.commit()
    return deleted


# --- Feedback ---

def create_feedback(
    db: Session,
    from_user_id: int,
    to_user_id: int,
    rating: int,
    comment: str,
    session_id: str,
) -> Feedback:
    feedback = Feedback(
        from_user_id=from_user_id,
        to_user_id=to_user_id,
        rating=rating,
        comment=comment or "",
        session_id=session_id,
    )
    db.add(feedback)
    db.flush()
    return feedback


def feedback_stats(db: Session, user_id: int):
    """Returns (average, count) over every rating the user has received."""
    avg, count = (
        db.query(func.avg(Feedback.rating), func.count(Feedback.id))
        .filter(Feedback.to_user_id == user_id)
        .one()
    )
    return (float(avg) if avg is not None else 0.0), int(count)


def list_feedback_for_user(db: Session, user_id: int) -> List[Feedback]:
    return (
        db.query(Feedback)
        .filter(Feedback.to_user_id == user_id)
        .order_by(Feedback.created_at, Feedback.id)
        .all()
    )
