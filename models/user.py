from sqlalchemy import Column, DateTime, ForeignKey, String, func

from database import Base


class User(Base):
    __tablename__ = "users"

    id = Column(String(64), primary_key=True, index=True)
    name = Column(String(256), nullable=False)
    email = Column(String(256), nullable=True)
    role = Column(String(32), nullable=False, default="citizen", index=True)
    status = Column(String(32), nullable=False, default="active")
    citizen_id = Column(String(64), ForeignKey("citizens.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
