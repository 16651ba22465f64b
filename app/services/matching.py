"""Handyman / property match scoring.

Pure functions only: callers load handymen, coverage areas and job history
and hand them in. Nothing here touches the database or creates offers.

    match_strength = 0.6 * distance + 0.3 * skill + 0.1 * workload

Every component is on a 0-100 scale.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Sequence

from app.models.enums import CoverageType

DISTANCE_WEIGHT = 0.6
SKILL_WEIGHT = 0.3
WORKLOAD_WEIGHT = 0.1

# Base distance score per coverage type at priority 1; each priority step costs 10.
_COVERAGE_BASE = {
    CoverageType.ZIP_CODE: 100,
    CoverageType.CITY: 90,
    CoverageType.RADIUS: 70,
}
PRIORITY_STEP = 10
SPECIALTIES_FOR_FULL_SKILL = 5
WORKLOAD_PENALTY_PER_JOB = 5

# Sort key for "no coverage matched" so covered candidates win ties.
NO_COVERAGE_PRIORITY = 10**6


@dataclass
class HandymanProfile:
    """Everything the engine needs to know about one handyman."""

    handyman_id: str
    specialties: Sequence[str] = ()
    coverage_areas: Sequence = ()
    # property_id -> completed jobs there
    completed_jobs: dict[str, int] = field(default_factory=dict)
    name: str = ""


@dataclass
class MatchScore:
    property_id: str
    handyman_id: str
    distance_score: float
    skill_score: float
    workload_score: float
    match_strength: float
    coverage_priority: int = NO_COVERAGE_PRIORITY
    match_reason: str = "No coverage match"

    def as_dict(self) -> dict:
        return {
            "property_id": self.property_id,
            "handyman_id": self.handyman_id,
            "distance_score": self.distance_score,
            "skill_score": self.skill_score,
            "workload_score": self.workload_score,
            "match_strength": self.match_strength,
            "coverage_priority": self.coverage_priority,
            "match_reason": self.match_reason,
        }


def _norm(s: str | None) -> str:
    return " ".join((s or "").replace(",", ", ").split()).lower()


def _city_matches(value: str, prop) -> bool:
    wanted = _norm(value)
    city = _norm(prop.city)
    if not city:
        return False
    if wanted == city:
        return True
    return wanted == _norm(f"{prop.city}, {prop.state}")


def _area_matches(area, prop) -> bool:
    kind = CoverageType(area.coverage_type)
    if kind is CoverageType.ZIP_CODE:
        return bool(prop.zip_code) and area.value.strip() == prop.zip_code.strip()
    if kind is CoverageType.CITY:
        return _city_matches(area.value, prop)
    if kind is CoverageType.RADIUS:
        # No geocoder: a radius area is treated as covering every property.
        return True
    raise ValueError(f"Unknown coverage type: {area.coverage_type}")


def _ordered(areas: Iterable) -> list:
    return sorted(areas, key=lambda a: a.priority)


def distance_score(prop, coverage_areas: Iterable) -> tuple[float, int, str]:
    """Score of the first matching coverage area in priority order.

    Returns ``(score, matched_priority, reason)``.
    """
    for area in _ordered(coverage_areas):
        if not _area_matches(area, prop):
            continue
        kind = CoverageType(area.coverage_type)
        score = _COVERAGE_BASE[kind] - PRIORITY_STEP * (area.priority - 1)
        reason = {
            CoverageType.ZIP_CODE: "Direct zip code match",
            CoverageType.CITY: "City coverage match",
            CoverageType.RADIUS: "Within service radius",
        }[kind]
        return float(max(0, min(100, score))), area.priority, reason
    return 0.0, NO_COVERAGE_PRIORITY, "No coverage match"


def skill_score(specialties: Sequence[str]) -> float:
    # TODO: compare against the issue's required trade once issues carry one.
    count = len([s for s in specialties or () if s])
    return float(min(100, count / SPECIALTIES_FOR_FULL_SKILL * 100))


def workload_score(completed_jobs: int) -> float:
    return float(max(0, 100 - WORKLOAD_PENALTY_PER_JOB * completed_jobs))


def match_strength(distance: float, skill: float, workload: float) -> float:
    return round(
        DISTANCE_WEIGHT * distance + SKILL_WEIGHT * skill + WORKLOAD_WEIGHT * workload,
        2,
    )


def score_pair(prop, profile: HandymanProfile) -> MatchScore:
    d, priority, reason = distance_score(prop, profile.coverage_areas)
    s = skill_score(profile.specialties)
    w = workload_score(profile.completed_jobs.get(prop.id, 0))
    return MatchScore(
        property_id=prop.id,
        handyman_id=profile.handyman_id,
        distance_score=d,
        skill_score=s,
        workload_score=w,
        match_strength=match_strength(d, s, w),
        coverage_priority=priority,
        match_reason=reason,
    )


def _rank_key(score: MatchScore, tie: str):
    return (-score.match_strength, score.coverage_priority, tie)


def rank_properties(profile: HandymanProfile, properties: Iterable) -> list[MatchScore]:
    """Rank candidate properties for one handyman, best first."""
    scores = [score_pair(p, profile) for p in properties]
    scores.sort(key=lambda s: _rank_key(s, s.property_id))
    return scores


def rank_handymen(prop, profiles: Iterable[HandymanProfile]) -> list[MatchScore]:
    """Rank handymen for one property, best first."""
    scores = [score_pair(prop, profile) for profile in profiles]
    scores.sort(key=lambda s: _rank_key(s, s.handyman_id))
    return scores
