"""Collaborator recommendations derived from a finished account report."""

from __future__ import annotations

import json
from typing import Any, Dict, List, Optional

from .llm import DeveloperRecommender, TextModel, strip_code_fences
from .logging import get_logger
from .models import Recommendation

logger = get_logger("recommend")

# Well-known open source accounts used when no model is available.
FALLBACK_ACCOUNTS = [
    ("kentcdodds", "Kent C. Dodds", 95),
    ("addyosmani", "Addy Osmani", 92),
    ("sindresorhus", "Sindre Sorhus", 90),
    ("wesbos", "Wes Bos", 88),
    ("gaearon", "Dan Abramov", 95),
    ("ljharb", "Jordan Harband", 87),
    ("mdo", "Mark Otto", 85),
    ("paulirish", "Paul Irish", 90),
    ("ryanflorence", "Ryan Florence", 93),
    ("fat", "Jacob Thornton", 86),
]


def activity_level(average_commits_per_week: float) -> str:
    if average_commits_per_week > 10:
        return "highly active"
    if average_commits_per_week > 3:
        return "moderately active"
    return "occasionally active"


def recommendation_profile(body: Dict[str, Any]) -> Dict[str, Any]:
    """The slice of a report body the recommender sees."""
    languages = list((body.get("overall_languages") or {}).get("language_distribution") or {})
    technical = body.get("technical_insights") or {}
    commits = body.get("commit_analysis") or {}
    return {
        "username": body.get("github_username", ""),
        "profile": body.get("user_profile") or {},
        "languages": languages,
        "frameworks": list(technical.get("frameworks") or []),
        "topics": list(body.get("topics_detected") or []),
        "activity": activity_level(float(commits.get("average_commits_per_week") or 0)),
        "summary": body.get("repository_summaries", ""),
    }


def parse_recommendations(answer: str, limit: int = 10) -> List[Recommendation]:
    try:
        payload = json.loads(strip_code_fences(answer))
    except json.JSONDecodeError as error:
        raise ValueError(f"not JSON: {error.msg}") from error
    if isinstance(payload, dict):
        payload = payload.get("recommendations")
    if not isinstance(payload, list):
        raise ValueError("expected a JSON array of recommendations")

    recommendations: List[Recommendation] = []
    seen = set()
    for item in payload:
        if not isinstance(item, dict):
            continue
        username = str(item.get("username") or "").strip().lstrip("@")
        if not username or username.lower() in seen:
            continue
        seen.add(username.lower())
        try:
            score = int(float(item.get("compatibility_score") or 0))
        except (TypeError, ValueError):
            score = 0
        recommendations.append(
            Recommendation(
                username=username,
                name=str(item.get("name") or username),
                reason=str(item.get("reason") or "").strip(),
                compatibility_score=max(0, min(score, 100)),
            )
        )
        if len(recommendations) >= limit:
            break
    if not recommendations:
        raise ValueError("no usable recommendations")
    return recommendations


def fallback_recommendations(profile: Dict[str, Any], limit: int = 10) -> List[Recommendation]:
    """Fixed list of accounts with reasons filled in from the analysed profile."""
    languages = ", ".join(profile.get("languages", [])[:3]) or "general-purpose languages"
    frameworks = ", ".join(profile.get("frameworks", [])[:3]) or "modern frameworks"
    topics = ", ".join(profile.get("topics", [])[:5]) or "open source"
    reason = (
        f"Prolific open source maintainer whose work spans {languages} and {frameworks}; "
        f"relevant to an {profile.get('activity', 'occasionally active')} developer interested in {topics}."
    )
    return [
        Recommendation(username=username, name=name, reason=reason, compatibility_score=score)
        for username, name, score in FALLBACK_ACCOUNTS[:limit]
    ]


def recommend_developers(
    body: Dict[str, Any], llm: Optional[TextModel], limit: int = 10
) -> List[Recommendation]:
    """Suggest up to ``limit`` developers for the account described by ``body``.

    Without a model, or when its answer cannot be used, the fixed fallback
    list is returned instead.
    """
    profile = recommendation_profile(body)
    if llm is None:
        logger.info("No language model; using fallback recommendations")
        return fallback_recommendations(profile, limit)
    answer = DeveloperRecommender(llm).recommend(json.dumps(profile, ensure_ascii=False, indent=2), limit)
    try:
        recommendations = parse_recommendations(answer, limit)
    except ValueError as error:
        logger.warning("Recommendation answer rejected (%s); using fallback recommendations", error)
        return fallback_recommendations(profile, limit)
    logger.info("Recommended %d developers for %s", len(recommendations), profile["username"])
    return recommendations
