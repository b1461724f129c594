"""
Outbound POST with retry/backoff shared by the Slack, Chatwork and SMS clients

Network errors, 429 and 5xx are retried with exponential backoff; other
4xx responses fail immediately. Failures are returned, never raised, so a
notification can never break the request that triggered it.
"""

import logging
from dataclasses import dataclass
from typing import Optional

import httpx
from tenacity import (
    retry,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

logger = logging.getLogger(__name__)

DEFAULT_MAX_RETRIES = 3
DEFAULT_INITIAL_DELAY = 1.0
DEFAULT_TIMEOUT = 10.0
MAX_BACKOFF_SECONDS = 10.0


@dataclass
class SendResult:
    success: bool
    error: Optional[str] = None
    status_code: Optional[int] = None
    retry_count: int = 0
    message_id: Optional[str] = None


class RetryableStatusError(Exception):
    """429 / 5xx answer worth another attempt"""

    def __init__(self, response: httpx.Response):
        super().__init__(f"HTTP {response.status_code}")
        self.response = response


def _is_retryable_status(status_code: int) -> bool:
    return status_code == 429 or status_code >= 500


def _is_retryable_error(exc: BaseException) -> bool:
    return isinstance(exc, (RetryableStatusError, httpx.HTTPError))


def _describe(service_name: str, response: httpx.Response) -> str:
    return f"{service_name} API error ({response.status_code}): {response.text[:200]}"


async def post_with_retry(
    url: str,
    service_name: str,
    max_retries: int = DEFAULT_MAX_RETRIES,
    initial_delay: float = DEFAULT_INITIAL_DELAY,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    timeout: float = DEFAULT_TIMEOUT,
    **request_kwargs,
) -> tuple[SendResult, Optional[httpx.Response]]:
    """POST to url, returning (result, last response)"""
    attempts = 0

    def _log_retry(retry_state):
        exc = retry_state.outcome.exception()
        logger.warning(
            f"⚠️ {service_name} retryable error (attempt {retry_state.attempt_number}/{max_retries}): "
            f"{str(exc) or exc.__class__.__name__}"
        )

    async with httpx.AsyncClient(transport=transport, timeout=timeout) as client:

        @retry(
            retry=retry_if_exception(_is_retryable_error),
            stop=stop_after_attempt(max_retries),
            wait=wait_exponential(multiplier=initial_delay, max=MAX_BACKOFF_SECONDS),
            before_sleep=_log_retry,
            reraise=True,
        )
        async def _send() -> httpx.Response:
            nonlocal attempts
            attempts += 1
            response = await client.post(url, **request_kwargs)
            if _is_retryable_status(response.status_code):
                raise RetryableStatusError(response)
            return response

        try:
            response = await _send()
        except RetryableStatusError as e:
            error = _describe(service_name, e.response)
            logger.error(f"❌ {service_name} failed after {attempts} attempts: {error}")
            return (
                SendResult(
                    success=False,
                    error=error,
                    status_code=e.response.status_code,
                    retry_count=attempts - 1,
                ),
                e.response,
            )
        except httpx.HTTPError as e:
            error = str(e) or e.__class__.__name__
            logger.error(f"❌ {service_name} failed after {attempts} attempts: {error}")
            return SendResult(success=False, error=error, retry_count=attempts - 1), None

    if response.is_success:
        logger.info(f"✅ {service_name} message sent (attempt {attempts})")
        return SendResult(success=True, status_code=response.status_code, retry_count=attempts - 1), response

    error = _describe(service_name, response)
    logger.error(f"❌ {error}")
    return (
        SendResult(success=False, error=error, status_code=response.status_code, retry_count=attempts - 1),
        response,
    )
