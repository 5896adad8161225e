"""Channel adapter registry."""

from collections.abc import Mapping

import httpx

from core.config import Settings
from domain.entities.notification import Channel
from domain.repositories.channel_adapter import IChannelAdapter
from infrastructure.channels.email import SendGridEmailAdapter
from infrastructure.channels.inbox import InboxChannelAdapter
from infrastructure.channels.webhook import WebhookChannelAdapter


def build_channel_adapters(
    settings: Settings,
    http_client: httpx.AsyncClient,
) -> Mapping[Channel, IChannelAdapter]:
    """One adapter per channel, configured from settings."""
    return {
        Channel.EMAIL: SendGridEmailAdapter(
            api_key=settings.sendgrid_api_key,
            sender_address=settings.email_sender_address,
            sender_name=settings.email_sender_name,
            subject_prefix=settings.email_subject_prefix,
        ),
        Channel.CHAT: WebhookChannelAdapter(Channel.CHAT, settings.chat_webhook_url, http_client),
        Channel.PUSH: WebhookChannelAdapter(Channel.PUSH, settings.push_webhook_url, http_client),
        Channel.SMS: WebhookChannelAdapter(Channel.SMS, settings.sms_webhook_url, http_client),
        Channel.IN_APP: InboxChannelAdapter(Channel.IN_APP),
        Channel.PORTAL: InboxChannelAdapter(Channel.PORTAL),
    }
