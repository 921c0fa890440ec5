"""Mapped views of tables owned by the messaging app."""
from chat_relay.infrastructure.db.models.participant import ParticipantModel

__all__ = [
    "ParticipantModel",
]
