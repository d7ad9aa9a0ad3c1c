"""Character context rendering.

Builds the short system instruction that tells the completion model who it
is speaking as. Rendering is a pure function of the character's attributes:
identical inputs always yield the identical string.
"""

from __future__ import annotations

from types import MappingProxyType

from npc_bridge.models import (
    DEFAULT_PERSONALITY,
    DEFAULT_REQUESTER_NAME,
    ConversationPayload,
    InteractionType,
)

WORD_LIMIT = 40

# (exclusive lower bound, clause) pairs, highest first; first match wins.
# Scores matching no band get the neutral clause, or the floor clause when
# below the floor bound. "{player}" is replaced with the requester's name.
FRIENDSHIP_BANDS: tuple[tuple[float, str], ...] = (
    (75, "You and {player} are best friends and trust each other completely."),
    (50, "You and {player} are good friends."),
    (20, "You and {player} are becoming friends."),
)
FRIENDSHIP_NEUTRAL = "You don't know {player} very well yet."
FRIENDSHIP_FLOOR: tuple[float, str] = (
    -20,
    "You dislike {player} and are cold toward them.",
)

ROMANCE_BANDS: tuple[tuple[float, str], ...] = (
    (75, "You are deeply in love with {player}."),
    (50, "You have a romantic crush on {player}."),
    (25, "You feel a spark of attraction toward {player}."),
)
ROMANCE_NEUTRAL = ""
ROMANCE_FLOOR: tuple[float, str] = (
    -20,
    "You are not romantically interested in {player}.",
)

PERSONALITY_FLAVOR: MappingProxyType[str, str] = MappingProxyType(
    {
        "friendly": "You are warm and welcoming to everyone.",
        "optimistic": "You always look on the bright side.",
        "humorous": "You love cracking jokes and playful teasing.",
        "shy": "You are quiet and get flustered easily.",
        "grumpy": "You complain a lot but secretly care.",
        "romantic": "You are dreamy and speak with affection.",
        "adventurous": "You crave exploration and talk about far-off places.",
        "lazy": "You would rather nap than do anything strenuous.",
        "serious": "You are focused, practical and to the point.",
        "energetic": "You are bubbly and excitable.",
        "flirty": "You are charming and a little bit teasing.",
        "wise": "You speak calmly and offer thoughtful advice.",
    }
)

INTERACTION_CLAUSE = (
    "{player} just interacted with you in person; react to that interaction."
)
CLOSING_CLAUSE = (
    f"Respond naturally and stay in character, in under {WORD_LIMIT} words."
)


def select_band(
    score: float,
    bands: tuple[tuple[float, str], ...],
    neutral: str,
    floor: tuple[float, str] | None = None,
) -> str:
    """Pick the clause for a score from an ordered band list.

    Args:
        score: Affinity score
        bands: (exclusive lower bound, clause) pairs, highest bound first
        neutral: Clause when no band matches and the score is not below floor
        floor: (exclusive upper bound, clause) for strongly negative scores

    Returns:
        The selected clause template
    """
    for threshold, clause in bands:
        if score > threshold:
            return clause
    if floor is not None and score < floor[0]:
        return floor[1]
    return neutral


def build_context(
    character_name: str,
    personality: str | None = DEFAULT_PERSONALITY,
    friendship: float | None = 0,
    romance: float | None = 0,
    requester_name: str | None = DEFAULT_REQUESTER_NAME,
    gender: str | None = None,
    interaction_type: InteractionType | str | None = InteractionType.DIALOGUE,
) -> str:
    """Render the system instruction for a character.

    Clauses are joined in a fixed order: identity, friendship band, romance
    band, personality flavor, interaction note, closing instruction. Missing
    inputs fall back to neutral defaults.

    Args:
        character_name: Display name of the character speaking
        personality: Personality tag; unknown tags add no flavor sentence
        friendship: Friendship score
        romance: Romance score
        requester_name: Name of the player being answered
        gender: Optional gender/voice tag
        interaction_type: "I" for a physical/social interaction, else dialogue

    Returns:
        Single-line instruction string
    """
    personality = personality or DEFAULT_PERSONALITY
    player = requester_name or DEFAULT_REQUESTER_NAME
    friendship = friendship or 0
    romance = romance or 0

    descriptor = f"{personality} {gender}" if gender else personality
    templates = [
        select_band(
            friendship, FRIENDSHIP_BANDS, FRIENDSHIP_NEUTRAL, FRIENDSHIP_FLOOR
        ),
        select_band(romance, ROMANCE_BANDS, ROMANCE_NEUTRAL, ROMANCE_FLOOR),
        PERSONALITY_FLAVOR.get(personality.lower(), ""),
    ]
    if interaction_type in (InteractionType.INTERACTION, "I"):
        templates.append(INTERACTION_CLAUSE)
    templates.append(CLOSING_CLAUSE)

    # Names come from the game, so substitute rather than str.format
    parts = [
        f"You are {character_name}, a {descriptor} Minecraft villager "
        f"talking to {player}."
    ]
    parts.extend(t.replace("{player}", player) for t in templates if t)
    return " ".join(parts)


def context_for_payload(payload: ConversationPayload) -> str:
    """Render the instruction for a decoded conversational payload."""
    return build_context(
        payload.character_name,
        personality=payload.personality,
        friendship=payload.friendship,
        romance=payload.romance,
        requester_name=payload.requester_name,
        gender=payload.gender,
        interaction_type=payload.interaction_type,
    )
