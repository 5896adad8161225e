"""Fixtures for API and database integration tests."""

import pytest

from domain.entities.case import CaseSnapshot, Matter, Recipient
from domain.entities.notification import Audience, Channel


@pytest.fixture(autouse=True)
def case_snapshot(case_source) -> CaseSnapshot:
    """Lawyer and client recipients with addresses, one active matter."""
    snapshot = CaseSnapshot(
        matters=[Matter(id="m-1", title="Klein vs. Acme", reference="AZ-2026-17", client_id="client-1")],
        recipients=[
            Recipient(
                id="lawyer-1",
                audience=Audience.LAWYER,
                email="weber@example.com",
                chat_id="chat-weber",
            ),
            Recipient(
                id="client-1",
                audience=Audience.CLIENT,
                email="jana@example.com",
                default_channel=Channel.EMAIL,
            ),
        ],
        default_lawyer_id="lawyer-1",
    )
    case_source.snapshot = snapshot
    return snapshot


@pytest.fixture
def event_payload() -> dict:
    return {
        "category": "document.finalized",
        "recipient_id": "client-1",
        "variables": {"document_title": "Statement of claim", "matter_title": "Klein vs. Acme"},
        "matter_id": "m-1",
    }
