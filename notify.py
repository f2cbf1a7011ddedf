"""
notify.py - Expo push notifications
====================================
Sends "your report was resolved" pushes to citizens' devices through the Expo
push service. Runs as a FastAPI background task after the status update has
committed; a failed push is logged and never affects the update.
"""

import logging

import httpx

from config import EXPO_PUSH_URL

logger = logging.getLogger(__name__)


def build_messages(tokens: list[str], problem: str, ward: str, points: int) -> list[dict]:
    return [
        {
            "to":    token,
            "title": "Issue resolved",
            "body":  f"The {problem} you reported in ward {ward} has been resolved. You earned {points} points.",
            "sound": "default",
        }
        for token in tokens
    ]


async def send_push(messages: list[dict]) -> bool:
    """
    POST the batch to Expo. Returns True on a 200 response.
    """
    if not messages:
        return False
    try:
        async with httpx.AsyncClient(timeout=10.0) as client:
            resp = await client.post(
                EXPO_PUSH_URL,
                json=messages,
                headers={"Accept": "application/json", "Content-Type": "application/json"},
            )
    except httpx.HTTPError as e:
        logger.warning("Push dispatch failed: %s", e)
        return False

    if resp.status_code == 200:
        logger.info("Push sent to %d device(s)", len(messages))
        return True
    logger.error("Push dispatch rejected: status=%d body=%s", resp.status_code, resp.text)
    return False
