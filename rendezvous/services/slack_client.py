"""
Slack Incoming Webhook client
"""

import logging
from typing import Any, Optional

import httpx

from .http_retry import DEFAULT_INITIAL_DELAY, DEFAULT_MAX_RETRIES, SendResult, post_with_retry

logger = logging.getLogger(__name__)


async def send_slack_webhook(
    webhook_url: str,
    payload: dict[str, Any],
    max_retries: int = DEFAULT_MAX_RETRIES,
    initial_delay: float = DEFAULT_INITIAL_DELAY,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> SendResult:
    """Post a message payload ({text, blocks}) to a Slack incoming webhook"""
    if not webhook_url.startswith("https://hooks.slack.com/"):
        logger.warning("⚠️ Slack webhook URL does not point at hooks.slack.com")

    result, _ = await post_with_retry(
        webhook_url,
        service_name="Slack",
        max_retries=max_retries,
        initial_delay=initial_delay,
        transport=transport,
        json=payload,
    )
    return result


def build_slack_payload(title: str, lines: list[str], link_url: Optional[str] = None, link_text: str = "Open") -> dict:
    """Section blocks with an optional link button"""
    section: dict[str, Any] = {
        "type": "section",
        "text": {"type": "mrkdwn", "text": f"*{title}*\n" + "\n".join(lines)},
    }
    if link_url:
        section["accessory"] = {
            "type": "button",
            "text": {"type": "plain_text", "text": link_text},
            "url": link_url,
        }
    return {"text": title, "blocks": [section]}
