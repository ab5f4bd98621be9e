# utils/email_webhook.py - Email delivery through the n8n workflow webhook
import logging
from typing import Any, Dict

import httpx

import config
from utils.errors import DownstreamFailure

logger = logging.getLogger(__name__)


def is_configured() -> bool:
    return bool(config.N8N_WEBHOOK_URL)


async def post_event(payload: Dict[str, Any]) -> None:
    """
    POST one event to the webhook. The workflow switches on ``type``
    (up_next, barber_alert, cancellation).

    Raises DownstreamFailure on transport errors and non-2xx responses.
    """
    if not is_configured():
        logger.debug("N8N_WEBHOOK_URL not set, skipping email event")
        return

    try:
        async with httpx.AsyncClient(timeout=config.WEBHOOK_TIMEOUT_SECONDS) as client:
            response = await client.post(config.N8N_WEBHOOK_URL, json=payload)
            response.raise_for_status()
    except httpx.HTTPStatusError as e:
        raise DownstreamFailure(f"Email webhook returned {e.response.status_code}")
    except httpx.HTTPError as e:
        raise DownstreamFailure(f"Email webhook unreachable: {e}")
