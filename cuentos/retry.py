"""
Bounded retries with exponential backoff for calls to the generative API.

Every stage of the pipeline runs its remote call through ``RetryExecutor``: the
call is attempted up to ``max_attempts`` times, each failed attempt is followed
by a ``2**attempt`` second wait plus up to one second of jitter, and the caller
receives a ``RetryOutcome`` describing either the accepted value or exhaustion.
"""

import asyncio
import logging
import random
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, List, Optional

logger = logging.getLogger("cuentos-app")

DEFAULT_MAX_ATTEMPTS = 5


def backoff_delay(attempt: int, rng=random) -> float:
    """Seconds to wait after the 0-based ``attempt`` failed"""
    return 2 ** attempt + rng.random()


async def wait_for_attempt(attempt: int, rng=random, sleep=asyncio.sleep) -> float:
    delay = backoff_delay(attempt, rng)
    await sleep(delay)
    return delay


@dataclass(frozen=True)
class Attempt:
    """Verdict on one response: accept it, or try again"""

    accepted: bool
    value: Any = None
    reason: str = ""
    backoff: bool = True

    @classmethod
    def accept(cls, value: Any) -> "Attempt":
        return cls(accepted=True, value=value)

    @classmethod
    def retry(cls, reason: str, backoff: bool = True) -> "Attempt":
        return cls(accepted=False, reason=reason, backoff=backoff)


@dataclass
class RetryOutcome:
    value: Any = None
    attempts: int = 0
    exhausted: bool = False
    # Last response object received, accepted or not
    last_response: Any = None
    errors: List[str] = field(default_factory=list)
    delays: List[float] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return not self.exhausted


class RetryExecutor:
    def __init__(
        self,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        rng: Optional[random.Random] = None,
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.max_attempts = max_attempts
        self._sleep = sleep
        self._rng = rng or random

    async def run(
        self,
        operation: Callable[[], Awaitable[Any]],
        evaluate: Callable[[Any], Attempt],
        label: str = "request",
    ) -> RetryOutcome:
        outcome = RetryOutcome()

        for attempt in range(self.max_attempts):
            outcome.attempts = attempt + 1
            backoff = True

            try:
                response = await operation()
            except Exception as e:
                reason = f"{type(e).__name__}: {e}"
            else:
                outcome.last_response = response
                verdict = evaluate(response)
                if verdict.accepted:
                    outcome.value = verdict.value
                    return outcome
                reason = verdict.reason
                backoff = verdict.backoff

            outcome.errors.append(reason)
            logger.warning(
                f"{label}: attempt {attempt + 1}/{self.max_attempts} failed ({reason})"
            )

            # No point waiting once the last attempt is spent
            if backoff and attempt < self.max_attempts - 1:
                outcome.delays.append(
                    await wait_for_attempt(attempt, self._rng, self._sleep)
                )

        outcome.exhausted = True
        logger.error(f"{label}: giving up after {self.max_attempts} attempts")
        return outcome
