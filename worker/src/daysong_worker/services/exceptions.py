"""Shared service-layer exceptions."""

from __future__ import annotations

from typing import Optional


class GenerationFailure(Exception):
    """Expected failure during song generation."""

    kind = "generation_failure"
    user_message = "Failed to generate your song. Please try again."


class ConfigurationError(GenerationFailure):
    """A backend is missing its credential or is not known."""

    kind = "configuration"
    user_message = "Song generation is not configured right now."


class CostExceeded(GenerationFailure):
    kind = "cost_exceeded"
    user_message = "That song is too long to generate. Try a shorter length."

    def __init__(self, estimated_cost: int, max_allowed: int, max_duration_ms: int) -> None:
        super().__init__(
            f"Estimated cost {estimated_cost} exceeds the maximum allowed cost of "
            f"{max_allowed}; the maximum allowed duration is "
            f"{max_duration_ms // 1000} seconds ({max_duration_ms} ms)"
        )
        self.estimated_cost = estimated_cost
        self.max_allowed = max_allowed
        self.max_duration_ms = max_duration_ms


class InsufficientCredits(GenerationFailure):
    kind = "insufficient_credits"
    user_message = "There are not enough generation credits left to create this song."

    def __init__(
        self,
        remaining: Optional[int],
        required: Optional[int],
        detail: Optional[str] = None,
    ) -> None:
        if detail is not None:
            message = detail
        else:
            message = f"Insufficient credits: {remaining} remaining, {required} required"
        super().__init__(message)
        self.remaining = remaining
        self.required = required


class PolicyRejected(GenerationFailure):
    """The provider refused the prompt on content-policy grounds."""

    kind = "policy_rejected"
    user_message = (
        "The song request was declined by the provider's content policy. "
        "Try describing it without naming real artists or songs."
    )

    def __init__(self, message: str, suggested_prompt: Optional[str] = None) -> None:
        super().__init__(f"Prompt rejected by content policy: {message}")
        self.suggested_prompt = suggested_prompt


class TransportError(GenerationFailure):
    """HTTP failure or malformed payload from a provider."""

    kind = "transport"


class GenerationFailed(GenerationFailure):
    """The provider reported a terminal failure."""

    kind = "generation_failed"


class PollTimeout(GenerationFailure):
    kind = "poll_timeout"
    user_message = (
        "Your song is taking longer than expected and may still be finishing. "
        "Please try again shortly."
    )

    def __init__(self, job_id: str, attempts: int) -> None:
        super().__init__(f"Music generation timed out: job {job_id} still pending after {attempts} attempts")
        self.job_id = job_id
        self.attempts = attempts
