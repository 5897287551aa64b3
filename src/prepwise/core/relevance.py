from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any

MAX_KEYWORDS = 120
HIGH_RELEVANCE_COUNT = 3
SUPPORTING_COUNT = 2
ACHIEVEMENT_BONUS = 0.5
ACHIEVEMENT_BONUS_CAP = 4

_KEYWORD_FIELDS = ("technical_skills", "soft_skills", "responsibilities", "qualifications")
_SPLIT_PATTERN = re.compile(r"[,;:()/\[\]|]+|\.(?:\s|$)|\s&\s|\b(?:and|or|with|including)\b", re.IGNORECASE)
_TOKEN_PATTERN = re.compile(r"[a-z0-9+#.\-]+")
_STOP_WORDS = frozenset(
    {
        "the", "for", "are", "you", "our", "your", "will", "who", "can", "able",
        "all", "any", "has", "have", "from", "that", "this", "into", "their",
        "them", "they", "not", "but", "per", "within", "across", "using", "use",
        "etc", "such", "well", "strong", "good", "excellent", "experience",
        "years", "year", "plus", "also", "other", "more", "must", "should",
    }
)


@dataclass(slots=True)
class RankedExperience:
    entry: dict[str, Any]
    score: float
    tier: str


@dataclass(slots=True)
class RelevanceRanking:
    keywords: list[str] = field(default_factory=list)
    high: list[RankedExperience] = field(default_factory=list)
    supporting: list[RankedExperience] = field(default_factory=list)

    def is_empty(self) -> bool:
        return not self.high and not self.supporting


def extract_keywords(job_requirements: dict[str, Any] | None) -> list[str]:
    if not job_requirements:
        return []

    keywords: list[str] = []
    seen: set[str] = set()

    def add(keyword: str) -> None:
        if keyword not in seen:
            seen.add(keyword)
            keywords.append(keyword)

    for field_name in _KEYWORD_FIELDS:
        for item in _as_strings(job_requirements.get(field_name)):
            for fragment in _SPLIT_PATTERN.split(item.lower()):
                tokens = [
                    token.strip(".-")
                    for token in _TOKEN_PATTERN.findall(fragment or "")
                ]
                tokens = [token for token in tokens if len(token) >= 3 and token not in _STOP_WORDS]
                if not tokens:
                    continue
                for size in (3, 2):
                    for start in range(len(tokens) - size + 1):
                        add(" ".join(tokens[start : start + size]))
                for token in tokens:
                    add(token)
            if len(keywords) >= MAX_KEYWORDS:
                return keywords[:MAX_KEYWORDS]

    return keywords[:MAX_KEYWORDS]


def experience_blob(entry: dict[str, Any]) -> str:
    parts = [
        str(entry.get("role") or ""),
        str(entry.get("company") or ""),
        str(entry.get("duration") or ""),
        *_as_strings(entry.get("achievements")),
    ]
    return " ".join(part for part in parts if part).lower()


def score_entry(entry: dict[str, Any], keywords: list[str]) -> float:
    blob = experience_blob(entry)
    score = float(sum(blob.count(keyword) for keyword in keywords))
    achievements = _as_strings(entry.get("achievements"))
    return score + ACHIEVEMENT_BONUS * min(len(achievements), ACHIEVEMENT_BONUS_CAP)


def score_experience(
    job_requirements: dict[str, Any] | None,
    experience: list[dict[str, Any]] | None,
) -> RelevanceRanking:
    """Rank work-history entries by keyword overlap with the job requirements.

    Ordering is stable, so equal scores keep their original CV order.
    """
    keywords = extract_keywords(job_requirements)
    if not keywords:
        return RelevanceRanking()

    entries = [entry for entry in experience or [] if isinstance(entry, dict)]
    scored = [(score_entry(entry, keywords), entry) for entry in entries]
    scored.sort(key=lambda pair: pair[0], reverse=True)

    high = [RankedExperience(entry=entry, score=score, tier="high") for score, entry in scored[:HIGH_RELEVANCE_COUNT]]
    supporting = [
        RankedExperience(entry=entry, score=score, tier="supporting")
        for score, entry in scored[HIGH_RELEVANCE_COUNT : HIGH_RELEVANCE_COUNT + SUPPORTING_COUNT]
    ]
    return RelevanceRanking(keywords=keywords, high=high, supporting=supporting)


def _as_strings(value: Any) -> list[str]:
    if isinstance(value, str):
        return [value] if value.strip() else []
    if isinstance(value, list):
        return [str(item) for item in value if isinstance(item, (str, int, float)) and str(item).strip()]
    return []
