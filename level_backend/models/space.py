from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, UniqueConstraint, Boolean
from sqlalchemy.sql import func
from app.database import Base

SETUP_STATES = ("CREATE_GROUPS", "INVITE_USERS", "COMPLETE")
SPACE_ROLES = ("OWNER", "ADMIN", "MEMBER")


class Space(Base):
    __tablename__ = "spaces"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    slug = Column(String, unique=True, index=True, nullable=False)
    state = Column(String, default="ACTIVE", nullable=False)  # ACTIVE|DISABLED
    setup_state = Column(String, default="CREATE_GROUPS", nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())


class SpaceUser(Base):
    __tablename__ = "space_users"
    __table_args__ = (
        UniqueConstraint('space_id', 'user_id', name='uq_space_user'),
    )

    id = Column(Integer, primary_key=True, index=True)
    space_id = Column(Integer, ForeignKey("spaces.id"), index=True)
    user_id = Column(Integer, ForeignKey("users.id"), index=True)
    role = Column(String, default="MEMBER", nullable=False)  # OWNER|ADMIN|MEMBER
    state = Column(String, default="ACTIVE", nullable=False)  # ACTIVE|DISABLED
    first_name = Column(String, default="")
    last_name = Column(String, default="")
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class SpaceSetupStep(Base):
    __tablename__ = "space_setup_steps"
    __table_args__ = (
        UniqueConstraint('space_id', 'state', name='uq_space_setup_step'),
    )

    id = Column(Integer, primary_key=True, index=True)
    space_id = Column(Integer, ForeignKey("spaces.id"), index=True)
    space_user_id = Column(Integer, ForeignKey("space_users.id"))
    state = Column(String, nullable=False)
    is_skipped = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
