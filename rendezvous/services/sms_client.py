"""
Twilio SMS client
https://www.twilio.com/docs/sms/api/message-resource
"""

import logging
from typing import Optional

import httpx

from ..config import TWILIO_ACCOUNT_SID, TWILIO_AUTH_TOKEN, TWILIO_FROM_NUMBER
from .http_retry import DEFAULT_INITIAL_DELAY, DEFAULT_MAX_RETRIES, SendResult, post_with_retry

logger = logging.getLogger(__name__)

# Twilio concatenates up to 1600 characters
MAX_SMS_LENGTH = 1600


def sms_configured() -> bool:
    return bool(TWILIO_ACCOUNT_SID and TWILIO_AUTH_TOKEN and TWILIO_FROM_NUMBER)


async def send_sms(
    to_phone: str,
    body: str,
    account_sid: Optional[str] = None,
    auth_token: Optional[str] = None,
    from_number: Optional[str] = None,
    max_retries: int = DEFAULT_MAX_RETRIES,
    initial_delay: float = DEFAULT_INITIAL_DELAY,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> SendResult:
    """Send an SMS to an E.164 number"""
    account_sid = account_sid or TWILIO_ACCOUNT_SID
    auth_token = auth_token or TWILIO_AUTH_TOKEN
    from_number = from_number or TWILIO_FROM_NUMBER

    if not (account_sid and auth_token and from_number):
        logger.debug("Twilio credentials not configured - SMS skipped")
        return SendResult(success=False, error="SMS not configured")

    if not to_phone or not to_phone.startswith("+"):
        logger.warning(f"Phone number not in E.164 format: {to_phone}")
        return SendResult(success=False, error="Phone number must be in E.164 format (e.g., +819012345678)")

    logger.info(f"📱 Sending SMS to {to_phone}")
    result, response = await post_with_retry(
        f"https://api.twilio.com/2010-04-01/Accounts/{account_sid}/Messages.json",
        service_name="Twilio",
        max_retries=max_retries,
        initial_delay=initial_delay,
        transport=transport,
        auth=(account_sid, auth_token),
        data={"To": to_phone, "From": from_number, "Body": body[:MAX_SMS_LENGTH]},
    )

    if result.success and response is not None:
        try:
            result.message_id = response.json().get("sid")
        except ValueError:
            logger.debug("Twilio response had no JSON body")
    return result
