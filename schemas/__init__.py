from schemas.asset_loan import AssetLoanCreate, AssetLoanStatusUpdate
from schemas.document import AdminNote, DocumentApplicationCreate, DocumentCompletion
from schemas.event import EventCreate, EventStatusUpdate, ParticipantRegister
from schemas.social_aid import ProgramCreate, RecipientAction, RecipientEnroll, RecipientEntrySchema

__all__ = [
    "AdminNote",
    "AssetLoanCreate",
    "AssetLoanStatusUpdate",
    "DocumentApplicationCreate",
    "DocumentCompletion",
    "EventCreate",
    "EventStatusUpdate",
    "ParticipantRegister",
    "ProgramCreate",
    "RecipientAction",
    "RecipientEnroll",
    "RecipientEntrySchema",
]
