from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from services.workflows import ProgramType, RecipientStatus


class ProgramCreate(BaseModel):
    program_name: str = Field(..., alias="programName", min_length=1, max_length=256)
    period: str
    type: ProgramType
    quota: Optional[int] = Field(None, ge=1, description="Maximum recipients; omit for no limit")
    description: Optional[str] = None
    location: Optional[str] = None

    model_config = {"populate_by_name": True}


class RecipientEntrySchema(BaseModel):
    citizen_id: Optional[str] = Field(None, alias="citizenId")
    family_id: Optional[str] = Field(None, alias="familyId")
    note: Optional[str] = None

    model_config = {"populate_by_name": True}


class RecipientEnroll(BaseModel):
    recipients: list[RecipientEntrySchema] = Field(..., min_length=1)


class RecipientAction(BaseModel):
    status: RecipientStatus
    note: Optional[str] = Field(None, max_length=1000)
    collected_at: Optional[datetime] = Field(None, alias="collectedAt")

    model_config = {"populate_by_name": True}
