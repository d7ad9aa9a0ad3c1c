"""Tests for character context rendering."""

from __future__ import annotations

import pytest

from npc_bridge.context import (
    CLOSING_CLAUSE,
    FRIENDSHIP_BANDS,
    FRIENDSHIP_FLOOR,
    FRIENDSHIP_NEUTRAL,
    PERSONALITY_FLAVOR,
    ROMANCE_BANDS,
    ROMANCE_FLOOR,
    build_context,
    context_for_payload,
    select_band,
)
from npc_bridge.models import ConversationPayload, InteractionType

FRIENDSHIP_TEMPLATES = (
    [FRIENDSHIP_FLOOR[1], FRIENDSHIP_NEUTRAL]
    + [c for _, c in reversed(FRIENDSHIP_BANDS)]
)
FRIENDSHIP_CLAUSES = [c.replace("{player}", "Steve") for c in FRIENDSHIP_TEMPLATES]


def friendship_clauses_in(text: str) -> list[str]:
    return [c for c in FRIENDSHIP_CLAUSES if c in text]


class TestBuildContextDefaults:
    """Absent inputs fall back to neutral defaults."""

    def test_all_defaults(self) -> None:
        text = build_context("Eliz")

        assert text.startswith("You are Eliz, a friendly Minecraft villager talking to Player.")
        assert text.endswith(CLOSING_CLAUSE)
        assert "don't know Player very well" in text

    def test_none_inputs_do_not_fail(self) -> None:
        text = build_context(
            "Eliz",
            personality=None,
            friendship=None,
            romance=None,
            requester_name=None,
            gender=None,
            interaction_type=None,
        )

        assert text == build_context("Eliz")

    def test_gender_in_identity(self) -> None:
        text = build_context("Eliz", personality="shy", gender="female")

        assert "a shy female Minecraft villager" in text

    def test_deterministic(self) -> None:
        args = ("Eliz", "humorous", 60, 10, "Steve", "female", "I")

        assert build_context(*args) == build_context(*args)


class TestFriendshipBands:
    """One friendship clause per band, escalating in warmth."""

    @pytest.mark.parametrize(
        ("score", "expected"),
        [
            (-50, "dislike"),
            (-20, "don't know"),
            (0, "don't know"),
            (21, "becoming friends"),
            (51, "good friends"),
            (76, "best friends"),
        ],
    )
    def test_band_selection(self, score: int, expected: str) -> None:
        text = build_context("Eliz", friendship=score, requester_name="Steve")

        clauses = friendship_clauses_in(text)
        assert len(clauses) == 1
        assert expected in clauses[0]

    def test_bands_escalate_monotonically(self) -> None:
        ordered = [
            select_band(score, FRIENDSHIP_BANDS, FRIENDSHIP_NEUTRAL, FRIENDSHIP_FLOOR)
            for score in (-21, 0, 21, 51, 76)
        ]

        assert len(set(ordered)) == 5
        assert ordered == FRIENDSHIP_TEMPLATES

    @pytest.mark.parametrize("romance", [-100, 0, 30, 60, 90])
    def test_independent_of_romance(self, romance: int) -> None:
        text = build_context("Eliz", friendship=51, romance=romance, requester_name="Steve")

        assert friendship_clauses_in(text) == [
            "You and Steve are good friends."
        ]


class TestRomanceBands:
    @pytest.mark.parametrize(
        ("score", "expected"),
        [
            (90, "deeply in love"),
            (60, "romantic crush"),
            (30, "spark of attraction"),
            (-30, "not romantically interested"),
        ],
    )
    def test_band_selection(self, score: int, expected: str) -> None:
        assert expected in build_context("Eliz", romance=score)

    def test_neutral_romance_adds_nothing(self) -> None:
        text = build_context("Eliz", romance=10)

        for _, clause in ROMANCE_BANDS:
            assert clause.replace("{player}", "Player") not in text
        assert ROMANCE_FLOOR[1].replace("{player}", "Player") not in text


class TestPersonalityAndInteraction:
    def test_known_personality_flavor(self) -> None:
        text = build_context("Eliz", personality="Humorous")

        assert PERSONALITY_FLAVOR["humorous"] in text

    def test_unknown_personality_passes_through(self) -> None:
        text = build_context("Eliz", personality="mysterious")

        assert "a mysterious Minecraft villager" in text
        assert not any(flavor in text for flavor in PERSONALITY_FLAVOR.values())

    def test_interaction_clause(self) -> None:
        dialogue = build_context("Eliz", requester_name="Steve")
        interaction = build_context(
            "Eliz", requester_name="Steve", interaction_type=InteractionType.INTERACTION
        )

        assert "interacted with you" not in dialogue
        assert "Steve just interacted with you" in interaction

    def test_braces_in_names_are_safe(self) -> None:
        text = build_context("{Eliz}", requester_name="{0}")

        assert "You are {Eliz}" in text

    def test_context_for_payload(self) -> None:
        payload = ConversationPayload.model_validate(
            {"pn": "Steve", "nn": "Eliz", "np": "shy", "a": 80, "t": "I"}
        )

        text = context_for_payload(payload)

        assert "best friends" in text
        assert PERSONALITY_FLAVOR["shy"] in text
        assert "Steve just interacted with you" in text
