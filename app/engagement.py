# app/engagement.py
"""Engagement scoring for a single view event.

Pure functions; nothing here touches the database. The score is built from
three parts: dwell time (up to 30 points, 5 minutes saturates), scroll depth
(up to 20 points) and interaction flags (fixed weights, capped at 50 points).
"""
import math
from typing import Any, Mapping

DURATION_CAP_SECONDS = 300
DURATION_POINTS = 30
SCROLL_POINTS = 20
INTERACTION_POINTS_CAP = 50
HIGH_INTENT_SCORE = 60
BOUNCE_SECONDS = 10
BOUNCE_SCORE = 10

INTERACTION_WEIGHTS = {
    "image_gallery_opened": 5,
    "map_viewed": 5,
    "contact_clicked": 10,
    "phone_revealed": 8,
    "whatsapp_clicked": 7,
    "favorited": 10,
    "inquiry_sent": 15,
}

# flags recorded on a view; share_clicked is tracked but carries no weight
INTERACTION_FLAGS = tuple(INTERACTION_WEIGHTS) + ("share_clicked",)


def _clamp(value, low, high):
    return max(low, min(high, value))


def engagement_score(view_duration: float, scroll_depth: float, interactions: Mapping[str, Any]) -> int:
    duration = max(0.0, float(view_duration or 0))
    scroll = _clamp(float(scroll_depth or 0), 0.0, 100.0)

    score = min(DURATION_POINTS, duration / DURATION_CAP_SECONDS * DURATION_POINTS)
    score += scroll / 100 * SCROLL_POINTS
    earned = sum(w for name, w in INTERACTION_WEIGHTS.items() if interactions.get(name))
    score += min(INTERACTION_POINTS_CAP, earned)

    # round half up, then clamp
    return int(_clamp(math.floor(score + 0.5), 0, 100))


def interactions_of(event) -> dict:
    return {name: bool(getattr(event, name, False)) for name in INTERACTION_FLAGS}


def score_event(event) -> int:
    return engagement_score(event.view_duration, event.scroll_depth, interactions_of(event))


def is_high_intent(score: int, interactions: Mapping[str, Any]) -> bool:
    return (
        score >= HIGH_INTENT_SCORE
        or bool(interactions.get("inquiry_sent"))
        or bool(interactions.get("phone_revealed"))
    )


def is_bounced(view_duration: float, score: int) -> bool:
    return float(view_duration or 0) < BOUNCE_SECONDS and score < BOUNCE_SCORE


def apply_derived_fields(event) -> None:
    """Recompute engagement_score, is_high_intent and bounced on an event in place."""
    score = score_event(event)
    event.engagement_score = score
    event.is_high_intent = is_high_intent(score, interactions_of(event))
    event.bounced = is_bounced(event.view_duration, score)
