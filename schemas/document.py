from typing import Optional

from pydantic import BaseModel, Field


class DocumentApplicationCreate(BaseModel):
    nik: str = Field(..., min_length=16, max_length=16)
    master_document_id: str = Field(..., alias="masterDocumentId")
    reason: Optional[str] = None
    citizen_note: Optional[str] = Field(None, alias="citizenNote")

    model_config = {"populate_by_name": True}


class AdminNote(BaseModel):
    admin_note: str = Field(..., alias="adminNote", min_length=1, max_length=500)

    model_config = {"populate_by_name": True}


class DocumentCompletion(AdminNote):
    file: str = Field(..., min_length=1, description="Stored file reference of the issued document")
