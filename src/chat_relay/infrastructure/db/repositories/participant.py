from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from chat_relay.application.exceptions import ParticipantLookupError
from chat_relay.infrastructure.db.models.participant import ParticipantModel


class SqlParticipantDirectory:
    """Implements application.ports.directory.ParticipantDirectory."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def active_participant_ids(self, conversation_id: str) -> list[str]:
        stmt = select(ParticipantModel.user_id).where(
            ParticipantModel.conversation_id == conversation_id,
            ParticipantModel.left_at.is_(None),
        )
        try:
            async with self._session_factory() as session:
                result = await session.execute(stmt)
                return list(result.scalars().all())
        except (SQLAlchemyError, OSError) as exc:
            raise ParticipantLookupError(
                f"participant lookup failed for conversation {conversation_id}"
            ) from exc
