from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Text, Boolean, UniqueConstraint
from sqlalchemy.sql import func
from app.database import Base

POST_STATES = ("OPEN", "CLOSED", "DELETED")


class Post(Base):
    __tablename__ = "posts"

    id = Column(Integer, primary_key=True, index=True)
    space_id = Column(Integer, ForeignKey("spaces.id"), index=True)
    space_user_id = Column(Integer, ForeignKey("space_users.id"), index=True)
    body = Column(Text, default="")
    state = Column(String, default="OPEN", nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())


class PostGroup(Base):
    __tablename__ = "post_groups"
    __table_args__ = (
        UniqueConstraint('post_id', 'group_id', name='uq_post_group'),
    )

    id = Column(Integer, primary_key=True, index=True)
    space_id = Column(Integer, ForeignKey("spaces.id"), index=True)
    post_id = Column(Integer, ForeignKey("posts.id"), index=True)
    group_id = Column(Integer, ForeignKey("groups.id"), index=True)


class Reply(Base):
    __tablename__ = "replies"

    id = Column(Integer, primary_key=True, index=True)
    space_id = Column(Integer, ForeignKey("spaces.id"), index=True)
    post_id = Column(Integer, ForeignKey("posts.id"), index=True)
    space_user_id = Column(Integer, ForeignKey("space_users.id"), index=True)
    body = Column(Text, default="")
    is_deleted = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())


class PostReaction(Base):
    __tablename__ = "post_reactions"
    __table_args__ = (
        UniqueConstraint('post_id', 'space_user_id', name='uq_post_reaction'),
    )

    id = Column(Integer, primary_key=True, index=True)
    space_id = Column(Integer, ForeignKey("spaces.id"), index=True)
    post_id = Column(Integer, ForeignKey("posts.id"), index=True)
    space_user_id = Column(Integer, ForeignKey("space_users.id"), index=True)
    value = Column(String, default="👍", nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class ReplyReaction(Base):
    __tablename__ = "reply_reactions"
    __table_args__ = (
        UniqueConstraint('reply_id', 'space_user_id', name='uq_reply_reaction'),
    )

    id = Column(Integer, primary_key=True, index=True)
    space_id = Column(Integer, ForeignKey("spaces.id"), index=True)
    post_id = Column(Integer, ForeignKey("posts.id"), index=True)
    reply_id = Column(Integer, ForeignKey("replies.id"), index=True)
    space_user_id = Column(Integer, ForeignKey("space_users.id"), index=True)
    value = Column(String, default="👍", nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
