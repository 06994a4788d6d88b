from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text, func
from sqlalchemy.orm import relationship

from database import Base


class SocialAidProgram(Base):
    __tablename__ = "social_aid_programs"

    id = Column(String(64), primary_key=True, index=True)
    program_name = Column(String(256), nullable=False)
    period = Column(String(64), nullable=False)
    # individual | household | public
    type = Column(String(32), nullable=False)
    quota = Column(Integer, nullable=True)
    description = Column(Text, nullable=True)
    location = Column(String(256), nullable=True)
    created_by = Column(String(64), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    recipients = relationship("SocialAidRecipient", back_populates="program")


class SocialAidRecipient(Base):
    __tablename__ = "social_aid_recipients"

    id = Column(String(64), primary_key=True, index=True)
    program_id = Column(String(64), ForeignKey("social_aid_programs.id", ondelete="CASCADE"), nullable=False, index=True)
    citizen_id = Column(String(64), ForeignKey("citizens.id", ondelete="CASCADE"), nullable=True, index=True)
    family_id = Column(String(64), ForeignKey("families.id", ondelete="CASCADE"), nullable=True, index=True)
    status = Column(String(32), nullable=False, default="not_collected", index=True)
    note = Column(Text, nullable=True)
    performed_by = Column(String(64), nullable=True)
    collected_at = Column(DateTime(timezone=True), nullable=True)
    decided_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    program = relationship("SocialAidProgram", back_populates="recipients")
    citizen = relationship("Citizen")
    family = relationship("Family")
