from __future__ import annotations

import json

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError

from .config import get_settings
from .llm_client import default_credentials
from .logging_config import configure_logging, logger
from .routes import api_router
from .services.conversation.chat_handler import get_chat_service
from .services.telegram import BOT_COMMANDS, TelegramError, get_telegram_client, get_update_dispatcher
from .utils import error_response


# Register global exception handlers for consistent error responses across the API
def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(RequestValidationError)
    async def _validation_exception_handler(request: Request, exc: RequestValidationError):
        logger.debug("validation error", extra={"errors": exc.errors(), "path": str(request.url)})
        return error_response(
            "Invalid request",
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=exc.errors(),
        )

    @app.exception_handler(HTTPException)
    async def _http_exception_handler(request: Request, exc: HTTPException):
        logger.debug(
            "http error",
            extra={"detail": exc.detail, "status": exc.status_code, "path": str(request.url)},
        )
        detail = exc.detail
        if not isinstance(detail, str):
            detail = json.dumps(detail)
        return error_response(detail, status_code=exc.status_code)

    @app.exception_handler(Exception)
    async def _unhandled_exception_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error", extra={"path": str(request.url)})
        return error_response("Internal server error", status_code=status.HTTP_500_INTERNAL_SERVER_ERROR)


configure_logging()
_settings = get_settings()

app = FastAPI(
    title=_settings.app_name,
    version=_settings.app_version,
    redoc_url=None,
)

register_exception_handlers(app)
app.include_router(api_router)


@app.on_event("startup")
# Detect model capabilities and register the bot with Telegram when the app starts
async def _start_bot() -> None:
    settings = get_settings()
    service = get_chat_service()

    if settings.openai_key:
        supports_images = await service.capabilities.detect(settings.model, default_credentials())
        logger.info("model capabilities", extra={"model": settings.model, "supports_images": supports_images})
    else:
        logger.info("no global API key configured; image capability unknown until a chat configures one")

    client = get_telegram_client()
    dispatcher = get_update_dispatcher()
    if client is None or dispatcher is None:
        return

    try:
        me = await client.get_me()
        dispatcher.set_identity(username=me.get("username"), bot_id=me.get("id"))
        await client.set_my_commands(BOT_COMMANDS)
        if settings.telegram_webhook_url:
            await client.set_webhook(settings.telegram_webhook_url, settings.telegram_webhook_secret)
            logger.info("Telegram webhook registered", extra={"url": settings.telegram_webhook_url})
    except TelegramError as exc:
        logger.error("Telegram startup failed", extra={"error": str(exc)})


@app.on_event("shutdown")
# Let pending summaries finish and release the HTTP client when the app stops
async def _stop_bot() -> None:
    await get_chat_service().summarization.wait_idle()
    client = get_telegram_client()
    if client is not None:
        await client.close()


__all__ = ["app"]
