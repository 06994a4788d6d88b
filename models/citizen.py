from sqlalchemy import Column, DateTime, ForeignKey, String, func
from sqlalchemy.orm import relationship

from database import Base


class Family(Base):
    __tablename__ = "families"

    id = Column(String(64), primary_key=True, index=True)
    family_name = Column(String(256), nullable=False)
    kk_number = Column(String(16), unique=True, nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    citizens = relationship("Citizen", back_populates="family")


class Citizen(Base):
    __tablename__ = "citizens"

    id = Column(String(64), primary_key=True, index=True)
    nik = Column(String(16), unique=True, nullable=False, index=True)
    full_name = Column(String(256), nullable=False)
    email = Column(String(256), nullable=True)
    phone_number = Column(String(32), nullable=True)
    family_id = Column(String(64), ForeignKey("families.id", ondelete="SET NULL"), nullable=True, index=True)
    # head_of_household, spouse, child, other
    family_status = Column(String(32), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    family = relationship("Family", back_populates="citizens")
