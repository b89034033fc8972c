from __future__ import annotations

import pytest

from medguide_core.models import UrgencyLevel
from medguide_triage.classifier import SymptomClassifier


@pytest.fixture
def classifier(registry):
    return SymptomClassifier(registry)


def test_emergency_phrase_with_cardiac_signal(classifier):
    result = classifier.classify("severe chest pain, can't breathe", "en")

    assert result.urgency_level is UrgencyLevel.EMERGENCY
    assert "cardiology" in result.specializations
    assert result.specializations[0] == "pulmonology"
    assert "108" in result.recommendations[0]
    assert any("specialist" in line for line in result.recommendations)


def test_routine_checkup_is_low_urgency(classifier):
    result = classifier.classify("routine checkup", "en")

    assert result.urgency_level is UrgencyLevel.LOW
    assert result.specializations == ["general_medicine"]


@pytest.mark.parametrize(
    "text",
    [
        "routine checkup but I think I had a stroke",
        "mild cough, then an accident on the way",
        "HEART ATTACK symptoms and high fever",
        "my friend is unconscious after a follow up visit",
    ],
)
def test_emergency_keyword_wins_over_lower_tiers(classifier, text):
    assert classifier.classify(text, "en").urgency_level is UrgencyLevel.EMERGENCY


def test_high_urgency_tier(classifier):
    result = classifier.classify("shortness of breath since morning", "en")

    assert result.urgency_level is UrgencyLevel.HIGH
    assert result.specializations == ["pulmonology"]


def test_no_signal_yields_medium_default(classifier):
    result = classifier.classify("I feel a bit off today", "en")

    assert result.urgency_level is UrgencyLevel.MEDIUM
    assert result.specializations == []
    assert len(result.recommendations) == 1
    assert "general physician" in result.recommendations[0]


def test_specializations_rank_by_hit_count_then_id(classifier):
    result = classifier.classify("skin rash with itching and a mild fever", "en")

    assert result.specializations == ["dermatology", "general_medicine"]


def test_tamil_locale_and_unknown_locale_fallback(classifier):
    tamil = classifier.classify("கடுமையான மார்பு வலி", "ta")
    unknown = classifier.classify("routine checkup", "fr")

    assert tamil.urgency_level is UrgencyLevel.EMERGENCY
    assert "cardiology" in tamil.specializations
    assert "108" in tamil.recommendations[0]
    assert unknown.urgency_level is UrgencyLevel.LOW


def test_curly_apostrophes_are_normalized(classifier):
    assert classifier.classify("I can’t breathe", "en").urgency_level is UrgencyLevel.EMERGENCY


def test_classify_never_raises(classifier, monkeypatch):
    def explode(*args, **kwargs):
        raise RuntimeError("catalog corrupted")

    monkeypatch.setattr(classifier, "match_specializations", explode)

    result = classifier.classify("chest pain", "en")

    assert result.urgency_level is UrgencyLevel.MEDIUM
    assert result.specializations == []
    assert result.recommendations


def test_urgency_levels_are_totally_ordered():
    ordered = sorted(UrgencyLevel, key=lambda level: level.rank)
    assert ordered == [UrgencyLevel.LOW, UrgencyLevel.MEDIUM, UrgencyLevel.HIGH, UrgencyLevel.EMERGENCY]
