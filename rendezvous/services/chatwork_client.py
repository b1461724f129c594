"""
Chatwork room message client
API: https://developer.chatwork.com/reference/post-rooms-room_id-messages
"""

import logging
from typing import Optional

import httpx

from .http_retry import DEFAULT_INITIAL_DELAY, DEFAULT_MAX_RETRIES, SendResult, post_with_retry

logger = logging.getLogger(__name__)

CHATWORK_API_BASE = "https://api.chatwork.com/v2"


async def send_chatwork_message(
    api_token: str,
    room_id: str,
    body: str,
    self_unread: bool = False,
    max_retries: int = DEFAULT_MAX_RETRIES,
    initial_delay: float = DEFAULT_INITIAL_DELAY,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> SendResult:
    data = {"body": body}
    if self_unread:
        data["self_unread"] = "1"

    result, response = await post_with_retry(
        f"{CHATWORK_API_BASE}/rooms/{room_id}/messages",
        service_name="Chatwork",
        max_retries=max_retries,
        initial_delay=initial_delay,
        transport=transport,
        headers={"X-ChatWorkToken": api_token},
        data=data,
    )

    if result.success and response is not None:
        try:
            result.message_id = str(response.json().get("message_id"))
        except ValueError:
            logger.debug("Chatwork response had no JSON body")
    return result


def build_chatwork_body(title: str, lines: list[str], link_url: Optional[str] = None) -> str:
    """[info][title]...[/title]...[/info] markup"""
    content = "\n".join(lines)
    if link_url:
        content = f"{content}\n{link_url}"
    return f"[info][title]{title}[/title]{content}[/info]"
