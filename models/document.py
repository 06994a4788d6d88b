from sqlalchemy import Column, DateTime, ForeignKey, String, Text, func
from sqlalchemy.orm import relationship

from database import Base


class MasterDocument(Base):
    __tablename__ = "master_documents"

    id = Column(String(64), primary_key=True, index=True)
    document_name = Column(String(256), nullable=False)
    description = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)


class ApplicationDocument(Base):
    __tablename__ = "application_documents"

    id = Column(String(64), primary_key=True, index=True)
    master_document_id = Column(String(64), ForeignKey("master_documents.id", ondelete="CASCADE"), nullable=False, index=True)
    citizen_id = Column(String(64), ForeignKey("citizens.id", ondelete="CASCADE"), nullable=False, index=True)
    nik = Column(String(16), nullable=False, index=True)
    status = Column(String(32), nullable=False, default="pending", index=True)
    reason = Column(Text, nullable=True)
    citizen_note = Column(Text, nullable=True)
    admin_note = Column(Text, nullable=True)
    # Reference to the issued document in file storage
    file = Column(String(512), nullable=True)
    decided_at = Column(DateTime(timezone=True), nullable=True)
    decided_by = Column(String(64), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    master_document = relationship("MasterDocument")
    citizen = relationship("Citizen")
