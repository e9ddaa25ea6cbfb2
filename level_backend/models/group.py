from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, UniqueConstraint, Boolean, Text
from sqlalchemy.sql import func
from app.database import Base


class Group(Base):
    __tablename__ = "groups"

    id = Column(Integer, primary_key=True, index=True)
    space_id = Column(Integer, ForeignKey("spaces.id"), index=True)
    creator_id = Column(Integer, ForeignKey("space_users.id"))
    name = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    is_private = Column(Boolean, default=False, nullable=False)
    state = Column(String, default="OPEN", nullable=False)  # OPEN|CLOSED
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())


class GroupUser(Base):
    __tablename__ = "group_users"
    __table_args__ = (
        UniqueConstraint('group_id', 'space_user_id', name='uq_group_user'),
    )

    id = Column(Integer, primary_key=True, index=True)
    space_id = Column(Integer, ForeignKey("spaces.id"), index=True)
    group_id = Column(Integer, ForeignKey("groups.id"), index=True)
    space_user_id = Column(Integer, ForeignKey("space_users.id"), index=True)
    role = Column(String, default="MEMBER", nullable=False)  # OWNER|MEMBER
    created_at = Column(DateTime(timezone=True), server_default=func.now())
