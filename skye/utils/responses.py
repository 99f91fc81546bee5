"""Error envelopes shared by the API exception handlers."""

from typing import Any, Dict

from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse


def error_response(message: str, *, status_code: int, detail: Any = None) -> JSONResponse:
    """Build the ``{"ok": false, "error": ...}`` body; *detail* may be any JSON-encodable value."""
    payload: Dict[str, Any] = {"ok": False, "error": message}
    if detail is not None:
        payload["detail"] = jsonable_encoder(detail)
    return JSONResponse(payload, status_code=status_code)
