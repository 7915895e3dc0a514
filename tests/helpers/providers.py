"""Provider stubs for exercising the AI tier without network access."""

import threading
from typing import Callable, List, Optional

from jobmatch.providers.base import LLMProvider
from jobmatch.providers.schema import (
    AIScoringRequest,
    JobScorePayload,
    ProviderErrorResponse,
    ProviderResponse,
    ScoreBatchResponse,
)

LONG_REASON = (
    "The role asks for Python and SQL analysis of product data, which lines up with the "
    "candidate's listed skills, the graduate level they are targeting, and their stated "
    "interest in fintech teams based in London"
)


def score_everything(request: AIScoringRequest, base_score: int = 90) -> ScoreBatchResponse:
    """Score every job in the batch, descending from base_score."""
    return ScoreBatchResponse(
        scores=[
            JobScorePayload(
                job_hash=job.job_hash,
                match_score=max(base_score - position, 0),
                match_reason=LONG_REASON,
                confidence=0.9,
            )
            for position, job in enumerate(request.jobs)
        ],
        tokens_used=1200,
    )


class ScriptedProvider(LLMProvider):
    """Returns queued responses, then scores everything once the queue is empty."""

    name = "scripted"

    def __init__(
        self,
        responses: Optional[List[ProviderResponse]] = None,
        fallback: Callable[[AIScoringRequest], ProviderResponse] = score_everything,
    ):
        self.responses = list(responses or [])
        self.fallback = fallback
        self.requests: List[AIScoringRequest] = []
        self.timeouts: List[float] = []
        self.closed = False
        self._lock = threading.Lock()

    @property
    def call_count(self) -> int:
        return len(self.requests)

    def score_batch(self, request: AIScoringRequest, timeout: float) -> ProviderResponse:
        with self._lock:
            self.requests.append(request)
            self.timeouts.append(timeout)
            if self.responses:
                return self.responses.pop(0)
        return self.fallback(request)

    def close(self) -> None:
        self.closed = True


class FailingProvider(ScriptedProvider):
    """Always answers with the same error code."""

    name = "failing"

    def __init__(self, code: str = "unavailable"):
        super().__init__(fallback=lambda request: ProviderErrorResponse(code=code, message=f"stub {code}"))


class SlowProvider(ScriptedProvider):
    """Blocks until released (or `delay` seconds pass) before scoring."""

    name = "slow"

    def __init__(self, delay: float = 5.0):
        super().__init__()
        self.delay = delay
        self.release = threading.Event()

    def score_batch(self, request: AIScoringRequest, timeout: float) -> ProviderResponse:
        self.release.wait(self.delay)
        return super().score_batch(request, timeout)


class RaisingProvider(ScriptedProvider):
    """Raises an unexpected exception from score_batch."""

    name = "raising"

    def score_batch(self, request: AIScoringRequest, timeout: float) -> ProviderResponse:
        raise RuntimeError("provider bug")
