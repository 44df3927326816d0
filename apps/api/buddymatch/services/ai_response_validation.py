"""Helpers for pulling structured JSON out of free-form completion text."""

from __future__ import annotations

import json
import logging
from typing import TypeVar

from pydantic import BaseModel, ValidationError

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

_decoder = json.JSONDecoder()


def _strip_code_fences(text: str) -> str:
    content = text.strip()
    if content.startswith("```"):
        lines = content.splitlines()
        if lines:
            lines = lines[1:]
        if lines and lines[-1].strip() == "```":
            lines = lines[:-1]
        content = "\n".join(lines).strip()
    return content


def parse_json_object(text: str | None) -> dict | None:
    """
    Return the first well-formed JSON object embedded in text.

    Models often wrap the payload in prose or code fences, and sometimes emit
    stray braces before it, so each "{" is tried in turn until one decodes.
    """
    if not text:
        return None
    content = _strip_code_fences(text)

    start = content.find("{")
    while start != -1:
        try:
            data, _ = _decoder.raw_decode(content, start)
        except json.JSONDecodeError:
            start = content.find("{", start + 1)
            continue
        if isinstance(data, dict):
            return data
        start = content.find("{", start + 1)

    logger.warning("No JSON object found in completion text")
    return None


def validate_model(model_cls: type[ModelT], data: dict | None) -> ModelT | None:
    if data is None:
        return None
    try:
        return model_cls.model_validate(data)
    except ValidationError as exc:
        logger.warning(f"Model validation failed: {exc}")
        return None


def validate_model_list(model_cls: type[ModelT], items: list | None) -> list[ModelT]:
    """Validate each dict item, skipping entries that do not fit the model."""
    if not items:
        return []
    validated: list[ModelT] = []
    for item in items:
        if isinstance(item, dict):
            model = validate_model(model_cls, item)
            if model:
                validated.append(model)
    return validated
