from __future__ import annotations

import pytest

from gutcheck_bot import detectors as d
from gutcheck_bot.keywords import CRISIS_PHRASES, _load_phrases


@pytest.mark.parametrize(
    "text",
    [
        "he is hitting me right now",
        "There's a KNIFE and he's about to use it",
        "currently he is threatening me with a gun",
    ],
)
def test_immediate_danger_needs_timing_and_violence(text):
    assert d.is_immediate_danger(text) is True


@pytest.mark.parametrize(
    "text",
    [
        "he was hitting me last year",       # violence, no timing
        "I need to talk right now",          # timing, no violence
        "",
        None,
    ],
)
def test_immediate_danger_false_without_both(text):
    assert d.is_immediate_danger(text) is False


def test_crisis_is_case_insensitive():
    assert d.is_crisis_situation("I want to DIE") is True
    assert d.is_crisis_situation("i want to die") is True


@pytest.mark.parametrize("phrase", CRISIS_PHRASES)
def test_every_crisis_phrase_matches_inside_a_sentence(phrase):
    assert d.is_crisis_situation(f"Honestly... {phrase.upper()} is how I feel.") is True


def test_crisis_has_no_negation_handling():
    # literal matching: negated phrases still count
    assert d.is_crisis_situation("I don't want to die") is True


def test_respond_immediately_on_quote_threat_or_image():
    assert d.should_respond_immediately("he said that never happened") is True
    assert d.should_respond_immediately("She threatened to post my photos") is True
    assert d.should_respond_immediately("just a normal day", has_image=True) is True
    assert d.should_respond_immediately("we went to the cinema") is False


def test_direct_advice_triggers():
    assert d.needs_direct_advice("A stranger on Instagram sent me a random message") is True
    assert d.needs_direct_advice("he keeps texting me after I blocked them") is True
    assert d.needs_direct_advice("we had pizza") is False


def test_personal_context_gate():
    assert d.should_include_personal_context("I've been struggling with trust") is True
    assert d.should_include_personal_context("we had pizza") is False


def test_stop_questioning_and_analysis_triggers():
    assert d.should_stop_questioning("Please, no more questions") is True
    assert d.should_stop_questioning("ok") is False

    assert d.should_provide_analysis("is this a red flag?", 1) is True
    assert d.should_provide_analysis("ok", 3) is False
    assert d.should_provide_analysis("ok", 4) is True


def test_complaint_detection():
    assert d.is_complaining_about_ai("Honestly you're not listening to me") is True
    assert d.is_complaining_about_ai("he is not listening to me") is False


def test_matched_phrases_keeps_list_order():
    assert d.matched_phrases("Cutting and suicide", CRISIS_PHRASES) == ["suicide", "cutting"]
    assert d.matched_phrases(None, CRISIS_PHRASES) == []


def test_missing_keyword_list_raises():
    with pytest.raises(FileNotFoundError):
        _load_phrases("does_not_exist")
