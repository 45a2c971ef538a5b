"""
JSON-speaking LLM client.

``JsonLLMClient.call`` sends a system prompt plus a JSON payload, retries
transient provider failures and returns the reply validated against a
pydantic model.  Malformed replies are not retried here; they surface as
:class:`MalformedResponseError` and the calling stage decides whether to
skip the work item.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Optional, Type, TypeVar

from pydantic import BaseModel, ValidationError

from ..errors import MalformedResponseError
from ..retry import RetryPolicy, with_retry
from .parsing import parse_json_response
from .providers import LLMProvider

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)


class JsonLLMClient:
    def __init__(self, provider: LLMProvider, retry_policy: Optional[RetryPolicy] = None) -> None:
        self.provider = provider
        self.retry_policy = retry_policy or RetryPolicy()

    async def call(self, system: str, payload: Any, schema: Type[M], *, label: str = "llm") -> M:
        user = payload if isinstance(payload, str) else json.dumps(payload, ensure_ascii=False)
        text = await with_retry(
            lambda: self.provider.complete(system, user),
            self.retry_policy,
            label=label,
        )
        data = parse_json_response(text)
        try:
            return schema.model_validate(data)
        except ValidationError as exc:
            logger.debug("%s reply failed validation: %s", label, exc)
            raise MalformedResponseError(
                f"{label} reply does not match {schema.__name__}: {exc.error_count()} error(s)",
                raw=text,
            ) from exc
