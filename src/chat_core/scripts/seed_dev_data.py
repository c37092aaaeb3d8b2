"""Seed development data: two users, their direct conversation and a few messages."""
from __future__ import annotations

import asyncio
import logging

from chat_core.application.dto.identity import ExternalIdentity
from chat_core.domain.value_objects.enums import MessageType
from chat_core.infrastructure.db.uow import open_uow
from chat_core.services import conversation_service, message_service, user_service

logger = logging.getLogger(__name__)


async def seed() -> None:
    async with open_uow() as uow:
        alice = await user_service.resolve_external_identity(
            ExternalIdentity(external_id="dev-alice", email="alice@example.com", name="Alice"),
            uow,
        )
        bob = await user_service.resolve_external_identity(
            ExternalIdentity(external_id="dev-bob", email="bob@example.com", name="Bob"),
            uow,
        )

        conv, _created = await conversation_service.find_or_create_direct(alice.id, bob.id, uow)

        messages_data = [
            (alice.id, "Hi Bob!"),
            (bob.id, "Hey Alice, how are you?"),
            (alice.id, "Good, thanks. Lunch tomorrow?"),
            (bob.id, "Sure"),
        ]
        for sender_id, content in messages_data:
            await message_service.append_message(
                conv.id, sender_id, content, MessageType.TEXT, None, uow,
            )

    logger.info(
        "Seeded conversation %s between users %s and %s with %d messages",
        conv.id, alice.id, bob.id, len(messages_data),
    )


def main() -> None:
    logging.basicConfig(level=logging.INFO)
    asyncio.run(seed())


if __name__ == "__main__":
    main()
