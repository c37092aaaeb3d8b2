"""Import all models so Base.metadata sees every table."""
from chat_core.infrastructure.db.models.conversation import ConversationModel
from chat_core.infrastructure.db.models.message import MessageModel, MessageReadModel
from chat_core.infrastructure.db.models.participant import ParticipantModel
from chat_core.infrastructure.db.models.presence import PresenceModel
from chat_core.infrastructure.db.models.user import UserModel

__all__ = [
    "ConversationModel",
    "MessageModel",
    "MessageReadModel",
    "ParticipantModel",
    "PresenceModel",
    "UserModel",
]
