from __future__ import annotations

import logging

import pytest

from gutcheck_bot import helplines as h
from gutcheck_bot.profile import Region


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("08001111", "0800 1111"),
        ("116123", "116 123"),
        ("08088005000", "0808 800 5000"),
        ("1800 737 732", "1800 7377 32"),
        ("988", "988"),
        ("18007997233", "1800 799 7233"),
    ],
)
def test_format_phone_number(raw, expected):
    assert h.format_phone_number(raw) == expected


def test_table_covers_every_region_with_an_emergency_line():
    for region in Region:
        lines = h.get_helplines_for_region(region)
        assert lines, region
        assert any(x.category == h.HelplineCategory.EMERGENCY for x in lines)
        assert all(x.region == region for x in lines)


def test_keywords_are_lowercase():
    for helpline in h.HELPLINES:
        assert all(k == k.lower() for k in helpline.keywords), helpline.name


def test_suicide_ranks_samaritans_first_in_uk():
    ranked = h.get_relevant_helplines("I keep thinking about suicide", "UK")
    assert ranked[0].name == "Samaritans"


def test_relevant_helplines_drops_zero_hits_and_caps_at_three():
    assert h.get_relevant_helplines("we had pizza", "UK") == []
    assert h.get_relevant_helplines("", "UK") == []

    text = "he is hitting me right now and I think about suicide, I'm scared and worried and lonely at school"
    ranked = h.get_relevant_helplines(text, "UK")
    assert len(ranked) == h.MAX_RECOMMENDED_HELPLINES
    # Childline has the most hits (scared, worried, lonely, school)
    assert ranked[0].name == "Childline"


def test_ties_keep_table_order():
    ranked = h.get_relevant_helplines("he is hitting me right now, suicide", "UK")
    assert [x.name for x in ranked] == [
        "Emergency Services",
        "Samaritans",
        "National Domestic Abuse Helpline",
    ]


def test_region_changes_the_table():
    assert h.get_relevant_helplines("suicide", "USA")[0].name == "988 Suicide & Crisis Lifeline"
    assert h.get_relevant_helplines("suicide", "Sydney, Australia")[0].name == "Lifeline Australia"
    assert h.get_relevant_helplines("suicide", "Canada")[0].name == "Canada Suicide Prevention Service"


def test_by_category():
    child = h.get_helplines_by_category("child", "UK")
    assert [x.name for x in child] == ["Childline", "NSPCC"]


def test_format_helplines():
    samaritans = next(x for x in h.HELPLINES if x.name == "Samaritans")
    assert h.format_helplines([]) == ""
    assert h.format_helplines([samaritans]) == (
        "\n\n**Support Available:**\n"
        "\n**Samaritans**: 116 123\n"
        "24/7 confidential emotional support for anyone in distress (24/7)\n"
    )


def test_crisis_only_uses_crisis_template():
    signal = h.assess_crisis("I keep thinking about suicide", "UK")
    assert signal.is_crisis is True
    assert signal.is_immediate_danger is False

    msg = h.recommendation_for(signal, "UK")
    assert "Crisis Support Available" in msg
    assert "IMMEDIATE DANGER" not in msg
    assert "**Samaritans**: 116 123" in msg


def test_crisis_log_names_matched_phrases_not_user_text(caplog):
    with caplog.at_level(logging.WARNING, logger="gutcheck_bot.helplines"):
        h.assess_crisis("I keep thinking about suicide", "UK")

    assert "phrases=['suicide']" in caplog.text
    assert "I keep thinking" not in caplog.text


def test_danger_template_wins_and_uses_regional_number():
    signal = h.assess_crisis("he is hitting me right now and I think about suicide", "US")
    assert signal.is_immediate_danger is True

    msg = h.recommendation_for(signal, "US")
    assert msg.startswith("\n\n⚠️ **IMMEDIATE DANGER**")
    assert "please call 911" in msg
    assert "Crisis Support Available" not in msg

    assert "please call 000" in h.get_helpline_recommendation_message(True, True, [], "Australia")
    assert "please call 999" in h.get_helpline_recommendation_message(True, True, [], None)


def test_additional_support_only_with_matches():
    beyond_blue = h.get_relevant_helplines("I feel anxious and overwhelmed", "Australia")
    assert beyond_blue[0].name == "Beyond Blue"
    msg = h.get_helpline_recommendation_message(False, False, beyond_blue, "Australia")
    assert "Additional Support" in msg

    assert h.get_helpline_recommendation_message(False, False, [], "UK") == ""
