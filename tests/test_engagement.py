# tests/test_engagement.py
import itertools
from types import SimpleNamespace

import pytest
from app.engagement import (
    INTERACTION_FLAGS,
    INTERACTION_WEIGHTS,
    apply_derived_fields,
    engagement_score,
    is_bounced,
    is_high_intent,
)


def _event(duration=0, scroll=0, **flags):
    base = {name: False for name in INTERACTION_FLAGS}
    base.update(flags)
    return SimpleNamespace(view_duration=duration, scroll_depth=scroll, **base)


def test_inquiry_scenario():
    event = _event(duration=400, scroll=100, inquiry_sent=True)
    apply_derived_fields(event)
    assert event.engagement_score == 65
    assert event.is_high_intent is True
    assert event.bounced is False


def test_components():
    assert engagement_score(0, 0, {}) == 0
    assert engagement_score(150, 0, {}) == 15
    assert engagement_score(10_000, 0, {}) == 30
    assert engagement_score(0, 50, {}) == 10
    assert engagement_score(0, 0, {"contact_clicked": True}) == 10


def test_interactions_cap_at_fifty():
    everything = {name: True for name in INTERACTION_WEIGHTS}
    assert sum(INTERACTION_WEIGHTS.values()) > 50
    assert engagement_score(0, 0, everything) == 50
    assert engagement_score(10_000, 100, everything) == 100


def test_out_of_range_inputs_are_clamped():
    assert engagement_score(-50, -10, {}) == 0
    assert engagement_score(0, 250, {}) == 20


@pytest.mark.parametrize("name", sorted(INTERACTION_WEIGHTS))
def test_monotonic_in_each_flag(name):
    for duration, scroll in itertools.product((0, 30, 299, 600), (0, 40, 100)):
        for others in ({}, {n: True for n in INTERACTION_WEIGHTS if n != name}):
            without = engagement_score(duration, scroll, {**others, name: False})
            with_flag = engagement_score(duration, scroll, {**others, name: True})
            assert without <= with_flag
            assert 0 <= with_flag <= 100


def test_monotonic_in_duration_and_scroll():
    previous = -1
    for duration in range(0, 400, 7):
        score = engagement_score(duration, 30, {"map_viewed": True})
        assert score >= previous
        previous = score
    previous = -1
    for scroll in range(0, 101, 3):
        score = engagement_score(20, scroll, {})
        assert score >= previous
        previous = score


def test_high_intent_overrides():
    assert is_high_intent(0, {"inquiry_sent": True})
    assert is_high_intent(0, {"phone_revealed": True})
    assert is_high_intent(60, {})
    assert not is_high_intent(59, {"contact_clicked": True})


def test_bounce_rule():
    assert is_bounced(0, 0)
    assert is_bounced(9.9, 9)
    assert not is_bounced(10, 0)
    assert not is_bounced(5, 10)


def test_share_click_carries_no_weight():
    event = _event(share_clicked=True)
    apply_derived_fields(event)
    assert event.engagement_score == 0
    assert event.bounced is True
