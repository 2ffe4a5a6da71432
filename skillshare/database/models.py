# SQLAlchemy models: User, Chat, Message, Feedback
from datetime import datetime

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from skillshare.database.db import Base


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String, unique=True, index=True, nullable=False)
    email = Column(String, unique=True, index=True, nullable=False)
    hashed_password = Column(String, nullable=False)

    skills_teach = Column(JSON, default=list, nullable=False)
    skills_learn = Column(JSON, default=list, nullable=False)

    rating = Column(Float, default=0.0, nullable=False)
    total_ratings = Column(Integer, default=0, nullable=False)
    sessions_completed = Column(Integer, default=0, nullable=False)

    is_online = Column(Boolean, default=False, nullable=False)
    connection_id = Column(String, nullable=True, index=True)

    created_at = Column(DateTime, default=datetime.utcnow)

    feedback_received = relationship(
        "Feedback", foreign_keys="Feedback.to_user_id", back_populates="to_user"
    )


class Chat(Base):
    """A two-person chat room. The pair is stored low id first so it is unique regardless of order."""

    __tablename__ = "chats"
    __table_args__ = (
        UniqueConstraint("user_low_id", "user_high_id", name="uq_chat_pair"),
        CheckConstraint("user_low_id < user_high_id", name="ck_chat_pair_order"),
    )

    id = Column(Integer, primary_key=True, index=True)
    user_low_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    user_high_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    last_message = Column(Text, default="", nullable=False)
    is_completed = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, index=True)

    user_low = relationship("User", foreign_keys=[user_low_id])
    user_high = relationship("User", foreign_keys=[user_high_id])
    messages = relationship("Message", back_populates="chat", cascade="all, delete-orphan")

    @property
    def participant_ids(self):
        return [self.user_low_id, self.user_high_id]

    @property
    def participants(self):
        return [self.user_low, self.user_high]

    def has_participant(self, user_id: int) -> bool:
        return user_id in (self.user_low_id, self.user_high_id)


class Message(Base):
    __tablename__ = "messages"

    id = Column(Integer, primary_key=True, index=True)
    chat_id = Column(Integer, ForeignKey("chats.id"), index=True, nullable=False)
    sender_id = Column(Integer, ForeignKey("users.id"), index=True, nullable=False)
    sender = Column(String, nullable=False)  # username at send time, for display
    content = Column(Text, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    chat = relationship("Chat", back_populates="messages")


class Feedback(Base):
    __tablename__ = "feedback"
    __table_args__ = (CheckConstraint("rating BETWEEN 1 AND 5", name="ck_feedback_rating"),)

    id = Column(Integer, primary_key=True, index=True)
    from_user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    to_user_id = Column(Integer, ForeignKey("users.id"), index=True, nullable=False)
    rating = Column(Integer, nullable=False)
    comment = Column(Text, default="", nullable=False)
    session_id = Column(String, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    to_user = relationship("User", foreign_keys=[to_user_id], back_populates="feedback_received")
