from models.asset import Asset, AssetLoan
from models.citizen import Citizen, Family
from models.document import ApplicationDocument, MasterDocument
from models.event import Event, EventParticipant
from models.social_aid import SocialAidProgram, SocialAidRecipient
from models.user import User

__all__ = [
    "ApplicationDocument",
    "Asset",
    "AssetLoan",
    "Citizen",
    "Event",
    "EventParticipant",
    "Family",
    "MasterDocument",
    "SocialAidProgram",
    "SocialAidRecipient",
    "User",
]
