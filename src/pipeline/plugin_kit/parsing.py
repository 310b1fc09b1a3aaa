# src/pipeline/plugin_kit/parsing.py — v1
"""Schema-validated deserialization boundary for LLM output.

Every LLM-backed agent turns raw completion text into its typed output model
here, and nowhere else. Failure is always a ValidationError.
"""

from __future__ import annotations

import json
import logging
from typing import Any, TypeVar

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from dealscope.pipeline.errors import ValidationError

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


def strip_code_fences(content: str) -> str:
    """Remove ``` / ```json fences and any prose around the JSON object."""
    text = content.strip()
    if text.startswith("```"):
        lines = text.split("\n")
        lines = [ln for ln in lines if not ln.strip().startswith("```")]
        text = "\n".join(lines).strip()
    if text and text[0] not in "{[":
        start = text.find("{")
        end = text.rfind("}")
        if start != -1 and end > start:
            text = text[start : end + 1]
    return text


def parse_json(content: str, agent: str | None = None) -> Any:
    text = strip_code_fences(content)
    if not text:
        raise ValidationError("Empty response", agent=agent, raw_content=content)
    try:
        return json.loads(text)
    except json.JSONDecodeError as exc:
        raise ValidationError(
            f"Response is not valid JSON: {exc.msg} at position {exc.pos}",
            agent=agent,
            raw_content=content,
        ) from exc


def parse_structured(
    content: str, schema: type[ModelT], agent: str | None = None
) -> ModelT:
    """Parse and validate LLM output into ``schema``.

    Raises:
        ValidationError: On malformed JSON or a schema mismatch.
    """
    payload = parse_json(content, agent=agent)
    try:
        return schema.model_validate(payload)
    except PydanticValidationError as exc:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or '<root>'}: {err['msg']}"
            for err in exc.errors()[:5]
        )
        logger.debug("Schema validation failed for %s: %s", schema.__name__, problems)
        raise ValidationError(
            f"{schema.__name__} validation failed: {problems}",
            agent=agent,
            raw_content=content,
        ) from exc
