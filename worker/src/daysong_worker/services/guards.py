"""Pre-submission cost and credit checks."""

from __future__ import annotations

import math
from typing import Awaitable, Callable, Protocol, Union

from loguru import logger

from ..app.models import SongSpec
from ..app.settings import Settings
from .exceptions import ConfigurationError, CostExceeded, InsufficientCredits
from .types import CreditStatus


class Guard(Protocol):
    async def check(self, spec: SongSpec) -> None: ...


class DurationCeilingGuard:
    """Rejects songs whose estimated cost exceeds a fixed ceiling."""

    def __init__(self, cost_per_second: float, max_allowed: int) -> None:
        if cost_per_second <= 0:
            raise ValueError("cost_per_second must be positive")
        self._cost_per_second = cost_per_second
        self._max_allowed = max_allowed

    @property
    def max_duration_ms(self) -> int:
        return int(math.floor(self._max_allowed / self._cost_per_second * 1000))

    def estimate_cost(self, length_ms: int) -> int:
        return int(math.ceil(length_ms / 1000 * self._cost_per_second))

    async def check(self, spec: SongSpec) -> None:
        estimate = self.estimate_cost(spec.length_ms)
        if estimate > self._max_allowed:
            logger.info(
                "Rejecting '{title}': estimated cost {estimate} > {max_allowed}",
                title=spec.title,
                estimate=estimate,
                max_allowed=self._max_allowed,
            )
            raise CostExceeded(estimate, self._max_allowed, self.max_duration_ms)


class AccountCreditGuard:
    """Checks remaining account credits before submitting.

    The provider remains the authoritative enforcer, so a failed lookup lets
    the request through instead of blocking it.
    """

    def __init__(
        self,
        lookup: Callable[[], Awaitable[int]],
        required_minimum: int,
    ) -> None:
        self._lookup = lookup
        self._required_minimum = required_minimum

    async def check(self, spec: SongSpec) -> None:
        try:
            remaining = await self._lookup()
        except Exception as exc:  # noqa: BLE001
            logger.warning("Credit lookup failed, allowing '{}': {}", spec.title, exc)
            return
        status = CreditStatus(remaining=int(remaining), required=self._required_minimum)
        if not status.sufficient:
            raise InsufficientCredits(status.remaining, status.required)
        logger.debug(
            "Credit check passed: {remaining} remaining, {required} required",
            remaining=status.remaining,
            required=status.required,
        )


def create_guard(backend_name: str, settings: Settings, backend: object) -> Union[DurationCeilingGuard, AccountCreditGuard]:
    if backend_name.startswith("elevenlabs"):
        policy = settings.elevenlabs_guard
        min_credits = settings.elevenlabs_min_credits
    elif backend_name == "suno":
        policy = settings.suno_guard
        min_credits = settings.suno_min_credits
    else:
        raise ConfigurationError(f"unknown backend '{backend_name}'")

    if policy == "duration":
        return DurationCeilingGuard(settings.cost_per_second, settings.max_cost)
    lookup = getattr(backend, "fetch_remaining_credits", None)
    if lookup is None:
        raise ConfigurationError(f"backend '{backend_name}' cannot report account credits")
    return AccountCreditGuard(lookup, min_credits)
