"""Telegram webhook routes."""

import asyncio
import hmac
from typing import Set

from fastapi import APIRouter, HTTPException, Request, status
from fastapi.responses import JSONResponse

from ..config import get_settings
from ..logging_config import logger
from ..models import TelegramUpdate
from ..services.telegram import UpdateDispatcher, get_update_dispatcher

router = APIRouter(prefix="/telegram", tags=["telegram"])

SECRET_HEADER = "X-Telegram-Bot-Api-Secret-Token"

_background_tasks: Set["asyncio.Task[None]"] = set()


@router.post("/webhook", response_class=JSONResponse)
async def telegram_webhook(request: Request) -> JSONResponse:
    """Accept a Telegram update and process it in the background.

    Telegram retries deliveries that do not answer quickly, so the response is
    returned as soon as the payload validates.
    """
    settings = get_settings()
    expected_secret = settings.telegram_webhook_secret
    if expected_secret:
        provided = request.headers.get(SECRET_HEADER, "")
        if not hmac.compare_digest(provided, expected_secret):
            logger.warning("Invalid webhook secret")
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid secret token")
    else:
        logger.debug("No webhook secret configured, skipping verification")

    raw_body = await request.body()
    try:
        update = TelegramUpdate.model_validate_json(raw_body)
    except ValueError as exc:
        logger.error("Failed to parse webhook payload", extra={"error": str(exc)})
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid payload")

    dispatcher = get_update_dispatcher()
    if dispatcher is None:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Telegram bot not configured")

    task = asyncio.create_task(_dispatch(dispatcher, update))
    _background_tasks.add(task)
    task.add_done_callback(_background_tasks.discard)
    return JSONResponse({"ok": True}, status_code=status.HTTP_200_OK)


async def _dispatch(dispatcher: UpdateDispatcher, update: TelegramUpdate) -> None:
    try:
        await dispatcher.dispatch(update)
    except Exception:
        logger.exception("Error handling Telegram update", extra={"update_id": update.update_id})
