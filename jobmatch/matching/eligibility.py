"""Hard-constraint eligibility filtering.

Checks are applied in a fixed order (location, visa, language, experience) and a
posting failing any of them is dropped. There is no partial credit and no
relaxation: when nothing passes, the eligible set is empty and the request ends
with method "none".
"""

import re
from collections import Counter
from typing import Dict, Iterable, List, Optional, Sequence, Set

from jobmatch.domain.models import JobPosting, UserProfile
from jobmatch.logging import get_logger
from jobmatch.utils.text import normalize_for_matching

logger = get_logger(__name__, component="eligibility")

REJECT_INACTIVE = "inactive"
REJECT_DUPLICATE = "duplicate"
REJECT_LOCATION = "location"
REJECT_VISA = "visa"
REJECT_LANGUAGE = "language"
REJECT_EXPERIENCE = "experience"

# Names under which a language may appear in postings or profiles
LANGUAGE_ALIASES: Dict[str, Sequence[str]] = {
    "english": ("english", "eng"),
    "spanish": ("spanish", "español", "espanol", "castellano"),
    "french": ("french", "français", "francais"),
    "german": ("german", "deutsch"),
    "italian": ("italian", "italiano"),
    "portuguese": ("portuguese", "português", "portugues"),
    "dutch": ("dutch", "nederlands", "flemish"),
    "polish": ("polish", "polski"),
    "swedish": ("swedish", "svenska"),
    "danish": ("danish", "dansk"),
    "norwegian": ("norwegian", "norsk"),
    "finnish": ("finnish", "suomi"),
    "czech": ("czech", "čeština", "cestina"),
    "romanian": ("romanian", "română", "romana"),
    "hungarian": ("hungarian", "magyar"),
    "greek": ("greek", "ελληνικά"),
    "russian": ("russian", "русский"),
    "ukrainian": ("ukrainian", "українська"),
    "turkish": ("turkish", "türkçe", "turkce"),
    "arabic": ("arabic", "العربية"),
    "hebrew": ("hebrew", "עברית"),
    "chinese": ("chinese", "mandarin", "cantonese", "中文"),
    "japanese": ("japanese", "日本語"),
    "korean": ("korean", "한국어"),
    "persian": ("persian", "farsi", "فارسی"),
}


def canonical_language(name: str) -> Optional[str]:
    """Map a language name or native spelling to its canonical English name.

    Example:
        >>> canonical_language("Fluent Deutsch")
        'german'
    """
    text = normalize_for_matching(name)
    if not text:
        return None
    for canonical, aliases in LANGUAGE_ALIASES.items():
        for alias in aliases:
            # "eng" only counts as a whole word
            if alias == "eng":
                if text == "eng" or text.startswith("eng "):
                    return canonical
            elif alias in text:
                return canonical
    return None


def language_satisfied(requirement: str, spoken: Iterable[str]) -> bool:
    """Whether any spoken language satisfies one posting requirement."""
    required = normalize_for_matching(requirement)
    if not required:
        return True
    required_canonical = canonical_language(required)
    for language in spoken:
        candidate = normalize_for_matching(language)
        if not candidate:
            continue
        if candidate == required:
            return True
        # Short codes such as "en" would match inside unrelated names
        if min(len(candidate), len(required)) >= 4 and (candidate in required or required in candidate):
            return True
        if required_canonical and canonical_language(candidate) == required_canonical:
            return True
    return False


def _split_location(location: Optional[str]):
    """Split a raw "City, Country" string into (city, country)."""
    if not location:
        return None, None
    parts = [p.strip() for p in location.split(",") if p.strip()]
    if not parts:
        return None, None
    if len(parts) == 1:
        return parts[0], None
    return parts[0], parts[-1]


def _contains_words(text: str, phrase: str) -> bool:
    return re.search(rf"(?<!\w){re.escape(phrase)}(?!\w)", text) is not None


def location_matches(job: JobPosting, target_cities: Sequence[str]) -> bool:
    """Case-insensitive whole-word match of target cities against city/country.

    "London" matches "Greater London"; "New York" does not match "York" and
    "US" does not match "Australia". Users without target cities have no
    location constraint.
    """
    targets = [normalize_for_matching(t) for t in target_cities if normalize_for_matching(t)]
    if not targets:
        return True

    city, country = job.city, job.country
    if not city and not country:
        city, country = _split_location(job.location)
    city_l = normalize_for_matching(city or "")
    country_l = normalize_for_matching(country or "")

    for target in targets:
        if city_l and _contains_words(city_l, target):
            return True
        if country_l and _contains_words(country_l, target):
            return True
    return False


class EligibilityFilter:
    """Reduces a candidate pool to the postings a user is eligible for.

    Stateless and safe to share between threads.
    """

    def evaluate(self, user: UserProfile, job: JobPosting) -> Optional[str]:
        """Return the name of the first failing check, or None if the job passes.

        Args:
            user: User profile snapshot
            job: Posting to check

        Returns:
            One of "inactive", "location", "visa", "language", "experience", or None
        """
        if not job.active:
            return REJECT_INACTIVE

        if not location_matches(job, user.target_cities):
            return REJECT_LOCATION

        if user.requires_sponsorship and not job.visa_friendly:
            return REJECT_VISA

        spoken = user.effective_languages
        for requirement in job.language_requirements:
            if not language_satisfied(requirement, spoken):
                return REJECT_LANGUAGE

        if user.is_entry_level and job.is_senior:
            return REJECT_EXPERIENCE

        return None

    def filter(self, user: UserProfile, jobs: Iterable[JobPosting]) -> List[JobPosting]:
        """Apply all checks to a pool, preserving input order.

        Duplicate job hashes keep their first occurrence.

        Args:
            user: User profile snapshot
            jobs: Candidate postings

        Returns:
            Eligible postings
        """
        eligible: List[JobPosting] = []
        seen: Set[str] = set()
        rejected: Counter = Counter()
        total = 0

        for job in jobs:
            total += 1
            if job.job_hash in seen:
                rejected[REJECT_DUPLICATE] += 1
                continue
            seen.add(job.job_hash)

            reason = self.evaluate(user, job)
            if reason is None:
                eligible.append(job)
            else:
                rejected[reason] += 1

        logger.info(
            f"Eligibility filter kept {len(eligible)} of {total} postings",
            extra={
                "event": "eligibility.filtered",
                "pool_size": total,
                "eligible_count": len(eligible),
                "rejected": dict(rejected),
                "requires_sponsorship": user.requires_sponsorship,
            },
        )

        if not eligible:
            logger.warning(
                f"No eligible postings among {total} candidates",
                extra={
                    "event": "eligibility.exhausted",
                    "error_type": "EligibilityExhausted",
                    "pool_size": total,
                    "rejected": dict(rejected),
                },
            )

        return eligible
