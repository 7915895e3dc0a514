"""Request and response shapes at the language-model boundary.

Responses are a tagged union on `kind`: a score batch or an error. Individual
score entries are validated one by one so that a single bad entry is discarded
without rejecting the batch; range and reason checks happen in the AI scorer.
"""

import json
import re
from typing import Annotated, Any, List, Literal, Optional, Union

from pydantic import BaseModel, Field, TypeAdapter, ValidationError, field_validator, model_validator

from .exceptions import ProviderResponseError

DESCRIPTION_PREVIEW_CHARS = 600

_CODE_FENCE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)


class UserSummary(BaseModel):
    """What the provider is told about the user."""

    career_path: List[str] = Field(default_factory=list)
    skills: List[str] = Field(default_factory=list)
    industries: List[str] = Field(default_factory=list)
    experience_level: Optional[str] = None
    target_cities: List[str] = Field(default_factory=list)
    languages_spoken: List[str] = Field(default_factory=list)


class JobSummary(BaseModel):
    """What the provider is told about one posting."""

    index: int = Field(..., ge=1, description="1-based position in the batch")
    job_hash: str
    title: str
    company: str
    location: str
    categories: List[str] = Field(default_factory=list)
    experience_level: Optional[str] = None
    work_environment: Optional[str] = None
    description: str = ""

    @field_validator("description")
    @classmethod
    def truncate_description(cls, v: str) -> str:
        """Keep prompts bounded; descriptions are cut to a preview."""
        if len(v) <= DESCRIPTION_PREVIEW_CHARS:
            return v
        return v[:DESCRIPTION_PREVIEW_CHARS].rstrip() + "..."


class AIScoringRequest(BaseModel):
    """One scoring call: a user summary, a batch of jobs and an output cap."""

    user: UserSummary
    jobs: List[JobSummary] = Field(..., min_length=1)
    max_tokens: int = Field(..., ge=1)
    min_results: int = Field(1, ge=1, description="How many jobs the model should score at least")


class JobScorePayload(BaseModel):
    """One entry of a score batch as returned by the model.

    The job may be referenced by hash or by its 1-based batch index. Scores that
    are not numbers and blank reasons are kept as None for the scorer to discard.
    """

    job_hash: Optional[str] = None
    job_index: Optional[int] = None
    match_score: Optional[float] = None
    match_reason: Optional[str] = None
    confidence: Optional[float] = None

    @field_validator("match_score", "confidence", mode="before")
    @classmethod
    def coerce_number(cls, v: Any) -> Optional[float]:
        """Unparseable numbers become None instead of failing the entry."""
        if v is None or isinstance(v, bool):
            return None
        try:
            return float(v)
        except (TypeError, ValueError):
            return None

    @field_validator("match_reason", mode="before")
    @classmethod
    def blank_reason_is_missing(cls, v: Any) -> Optional[str]:
        if v is None:
            return None
        text = str(v).strip()
        return text or None

    @model_validator(mode="after")
    def require_reference(self):
        """An entry must say which job it scores."""
        if not self.job_hash and self.job_index is None:
            raise ValueError("score entry needs job_hash or job_index")
        return self


class ScoreBatchResponse(BaseModel):
    """Successful provider answer."""

    kind: Literal["score_batch"] = "score_batch"
    scores: List[JobScorePayload] = Field(default_factory=list)
    discarded: int = Field(0, ge=0, description="Entries rejected while parsing")
    tokens_used: Optional[int] = Field(None, ge=0)


class ProviderErrorResponse(BaseModel):
    """Failed provider call, mapped to one of the error codes the scorer handles."""

    kind: Literal["error"] = "error"
    code: Literal["timeout", "rate_limited", "malformed", "unavailable"]
    message: str
    retry_after: Optional[float] = None


ProviderResponse = Annotated[Union[ScoreBatchResponse, ProviderErrorResponse], Field(discriminator="kind")]

provider_response_adapter: TypeAdapter = TypeAdapter(ProviderResponse)


def parse_score_content(content: str) -> ScoreBatchResponse:
    """Parse the model's JSON message content into a score batch.

    Accepts {"matches": [...]}, {"scores": [...]} or a bare list, optionally
    wrapped in a Markdown code fence.

    Args:
        content: Message content returned by the model

    Returns:
        ScoreBatchResponse with every entry that validated

    Raises:
        ProviderResponseError: If the content is not JSON or has no entry list
    """
    if not content or not content.strip():
        raise ProviderResponseError("Empty response content")

    text = _CODE_FENCE.sub("", content.strip())
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise ProviderResponseError(f"Response content is not valid JSON: {e}") from e

    if isinstance(data, dict):
        entries = data.get("matches", data.get("scores"))
    else:
        entries = data

    if not isinstance(entries, list):
        raise ProviderResponseError("Response JSON has no list of matches")

    scores = []
    discarded = 0
    for entry in entries:
        try:
            scores.append(JobScorePayload.model_validate(entry))
        except ValidationError:
            discarded += 1

    return ScoreBatchResponse(scores=scores, discarded=discarded)
