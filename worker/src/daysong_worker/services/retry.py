"""Bounded recovery from content-policy rejections."""

from __future__ import annotations

from typing import Any, Awaitable, Protocol

from loguru import logger

from ..app.models import SongSpec
from .exceptions import PolicyRejected
from .types import PolicyRejection, SubmissionResult

DEFAULT_MAX_SUBMIT_ATTEMPTS = 2


class Submitter(Protocol):
    name: str

    def submit(self, prompt: str, spec: SongSpec) -> Awaitable[Any]: ...


async def submit_with_recovery(
    backend: Submitter,
    prompt: str,
    spec: SongSpec,
    *,
    max_attempts: int = DEFAULT_MAX_SUBMIT_ATTEMPTS,
) -> SubmissionResult:
    """Submit ``prompt``, swapping in the provider's suggested prompt once if rejected.

    Providers can keep rejecting substituted prompts, and every submission may
    be billed, so the number of submissions is capped at ``max_attempts``.
    Errors other than a policy rejection propagate without a retry.
    """
    if max_attempts < 1:
        raise ValueError("max_attempts must be at least 1")

    current_prompt = prompt
    for attempt in range(1, max_attempts + 1):
        outcome = await backend.submit(current_prompt, spec)
        if not isinstance(outcome, PolicyRejection):
            return SubmissionResult(
                outcome=outcome,
                prompt_used=current_prompt,
                was_prompt_modified=attempt > 1,
                attempts=attempt,
            )

        suggestion = (outcome.suggested_prompt or "").strip()
        if not suggestion:
            logger.warning("{} rejected the prompt without a suggestion", backend.name)
            raise PolicyRejected(outcome.message)
        if attempt >= max_attempts:
            logger.warning(
                "{} rejected the prompt again after {} attempts", backend.name, attempt
            )
            raise PolicyRejected(outcome.message, suggestion)

        logger.info(
            "{} rejected the prompt ({}); retrying with suggested prompt",
            backend.name,
            outcome.message,
        )
        current_prompt = suggestion

    raise PolicyRejected("submission attempts exhausted")
