from sqlalchemy import Column, DateTime, ForeignKey, String, Text, func
from sqlalchemy.orm import relationship

from database import Base


class Asset(Base):
    __tablename__ = "assets"

    id = Column(String(64), primary_key=True, index=True)
    code = Column(String(64), unique=True, nullable=False)
    asset_name = Column(String(256), nullable=False)
    condition = Column(String(32), nullable=False, default="good")
    # idle | onloan; flipped atomically when a loan is approved or returned
    status = Column(String(32), nullable=False, default="idle", index=True)
    borrower_id = Column(String(64), ForeignKey("citizens.id", ondelete="SET NULL"), nullable=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    loans = relationship("AssetLoan", back_populates="asset")


class AssetLoan(Base):
    __tablename__ = "asset_loans"

    id = Column(String(64), primary_key=True, index=True)
    asset_id = Column(String(64), ForeignKey("assets.id", ondelete="CASCADE"), nullable=False, index=True)
    citizen_id = Column(String(64), ForeignKey("citizens.id", ondelete="CASCADE"), nullable=False, index=True)
    status = Column(String(32), nullable=False, default="waiting_approval", index=True)
    reason = Column(Text, nullable=False)
    note = Column(Text, nullable=True)
    borrowed_at = Column(DateTime(timezone=True), nullable=True)
    expected_return_date = Column(DateTime(timezone=True), nullable=True)
    returned_at = Column(DateTime(timezone=True), nullable=True)
    decided_at = Column(DateTime(timezone=True), nullable=True)
    decided_by = Column(String(64), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    asset = relationship("Asset", back_populates="loans")
    citizen = relationship("Citizen")
