"""Detect whether the active model accepts image input."""

from __future__ import annotations

from typing import Any, Awaitable, Callable, Dict, List, Optional

from ..llm_client import ApiCredentials, list_models
from ..logging_config import logger

ListModelsFn = Callable[..., Awaitable[List[Dict[str, Any]]]]


def _model_supports_images(entry: Dict[str, Any]) -> Optional[bool]:
    architecture = entry.get("architecture")
    if isinstance(architecture, dict):
        modalities = architecture.get("input_modalities")
        if isinstance(modalities, list):
            return "image" in modalities
        modality = architecture.get("modality")
        if isinstance(modality, str) and "->" in modality:
            return "image" in modality.split("->", 1)[0]
    modalities = entry.get("input_modalities")
    if isinstance(modalities, list):
        return "image" in modalities
    return None


class ModelCapabilities:
    """Caches image-input support per model, queried once from the model registry.

    ``supports_images`` returns ``None`` while the capability is unknown, in which
    case callers pass messages through untouched.
    """

    def __init__(self, list_models_fn: ListModelsFn = list_models) -> None:
        self._list_models = list_models_fn
        self._image_support: Dict[str, Optional[bool]] = {}

    def supports_images(self, model: str) -> Optional[bool]:
        return self._image_support.get(model)

    def set_image_support(self, model: str, value: Optional[bool]) -> None:
        self._image_support[model] = value

    async def detect(self, model: str, credentials: ApiCredentials) -> Optional[bool]:
        if model in self._image_support:
            return self._image_support[model]

        try:
            entries = await self._list_models(credentials=credentials)
        except Exception as exc:
            logger.warning(
                "model capability detection failed",
                extra={"model": model, "error": str(exc)},
            )
            return None

        support: Optional[bool] = None
        for entry in entries:
            if entry.get("id") == model:
                support = _model_supports_images(entry)
                break
        else:
            logger.warning("model not found in registry", extra={"model": model})

        self._image_support[model] = support
        logger.info(
            "model capabilities detected",
            extra={"model": model, "supports_images": support},
        )
        return support


__all__ = ["ModelCapabilities"]
