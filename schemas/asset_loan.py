from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from services.workflows import AssetLoanStatus


class AssetLoanCreate(BaseModel):
    nik: str = Field(..., min_length=16, max_length=16, description="Borrower's NIK")
    asset_id: str = Field(..., alias="assetId")
    reason: str = Field(..., min_length=1, max_length=1000)
    borrowed_at: datetime = Field(..., alias="borrowedAt")
    expected_return_date: datetime = Field(..., alias="expectedReturnDate")

    model_config = {"populate_by_name": True}


class AssetLoanStatusUpdate(BaseModel):
    status: AssetLoanStatus
    note: Optional[str] = Field(None, max_length=1000)
