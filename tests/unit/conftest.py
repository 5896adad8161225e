"""Shared fixtures for unit tests."""

from collections.abc import Callable

import pytest

from domain.entities.case import CaseSnapshot, Matter, Recipient
from domain.entities.notification import Audience, Channel, EventCategory, EventOccurrence

LAWYER_ID = "lawyer-1"
CLIENT_ID = "client-1"


@pytest.fixture
def lawyer() -> Recipient:
    return Recipient(
        id=LAWYER_ID,
        audience=Audience.LAWYER,
        name="Dr. Weber",
        email="weber@example.com",
        phone="+4915100000001",
        chat_id="chat-weber",
    )


@pytest.fixture
def client_recipient() -> Recipient:
    return Recipient(
        id=CLIENT_ID,
        audience=Audience.CLIENT,
        name="Jana Klein",
        email="jana@example.com",
        default_channel=Channel.EMAIL,
    )


@pytest.fixture
def matter() -> Matter:
    return Matter(id="m-1", title="Klein vs. Acme", reference="AZ-2026-17", client_id=CLIENT_ID)


@pytest.fixture
def snapshot(lawyer: Recipient, client_recipient: Recipient, matter: Matter) -> CaseSnapshot:
    """Snapshot with both recipients and one matter but no dated items."""
    return CaseSnapshot(
        matters=[matter],
        recipients=[lawyer, client_recipient],
        default_lawyer_id=LAWYER_ID,
    )


@pytest.fixture
def client_event() -> Callable[..., EventOccurrence]:
    """Factory for client occurrences on matter m-1."""

    def factory(
        category: EventCategory = EventCategory.DOCUMENT_FINALIZED,
        recipient_id: str = CLIENT_ID,
        **variables: str,
    ) -> EventOccurrence:
        return EventOccurrence(
            category=category,
            recipient_id=recipient_id,
            variables={
                "document_title": "Statement of claim",
                "matter_title": "Klein vs. Acme",
                **variables,
            },
            matter_id="m-1",
        )

    return factory
