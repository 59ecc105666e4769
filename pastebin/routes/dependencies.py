"""
Request-scoped accessors for objects built at startup.
"""
import logging
from typing import Optional

from fastapi import Header, Request

from pastebin.config import Settings
from pastebin.service import PasteService

logger = logging.getLogger(__name__)


def get_service(request: Request) -> PasteService:
    return request.app.state.service


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def simulated_now_ms(
    request: Request,
    x_test_now_ms: Optional[str] = Header(None),
) -> Optional[int]:
    """
    Simulated current time from the x-test-now-ms header.

    Only honoured when TEST_MODE is enabled; otherwise the service clock is used.

    Returns:
        Milliseconds since epoch, or None to use the real clock
    """
    if not get_settings(request).TEST_MODE or not x_test_now_ms:
        return None
    try:
        return int(x_test_now_ms)
    except ValueError as e:
        logger.warning(f"Invalid x-test-now-ms header: {e}")
        return None
