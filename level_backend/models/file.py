from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.sql import func
from app.database import Base


class File(Base):
    __tablename__ = "files"

    id = Column(Integer, primary_key=True, index=True)
    space_id = Column(Integer, ForeignKey("spaces.id"), index=True)
    space_user_id = Column(Integer, ForeignKey("space_users.id"), index=True)
    filename = Column(String, nullable=False)
    content_type = Column(String, nullable=True)
    size = Column(Integer, default=0, nullable=False)
    url = Column(String, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class PostFile(Base):
    __tablename__ = "post_files"
    __table_args__ = (
        UniqueConstraint('post_id', 'file_id', name='uq_post_file'),
    )

    id = Column(Integer, primary_key=True, index=True)
    space_id = Column(Integer, ForeignKey("spaces.id"), index=True)
    post_id = Column(Integer, ForeignKey("posts.id"), index=True)
    file_id = Column(Integer, ForeignKey("files.id"), index=True)


class ReplyFile(Base):
    __tablename__ = "reply_files"
    __table_args__ = (
        UniqueConstraint('reply_id', 'file_id', name='uq_reply_file'),
    )

    id = Column(Integer, primary_key=True, index=True)
    space_id = Column(Integer, ForeignKey("spaces.id"), index=True)
    reply_id = Column(Integer, ForeignKey("replies.id"), index=True)
    file_id = Column(Integer, ForeignKey("files.id"), index=True)
