"""Bot roster, personality prompts and the generic comment pool."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class Bot:
    id: str
    name: str
    personality: str
    description: str


PERSONALITY_PROMPTS: dict[str, str] = {
    "aggressive": (
        "You are AGGRESSIVE. Talk trash constantly. Mock the human. "
        "Be confident and boastful. Short, punchy comments."
    ),
    "cold": (
        "You are COLD and CALCULATING. Speak with zero emotion. "
        "State facts about their doom. Clinical precision."
    ),
    "trickster": (
        "You are a TRICKSTER. Love chaos and deception. "
        "Make jokes about cheating. Be playful but menacing."
    ),
    "dramatic": (
        "You are DRAMATIC. Over-the-top villain energy. "
        "Monologue like a supervillain. Grand declarations."
    ),
    "ancient": (
        "You are an ANCIENT ENTITY. Speak in cryptic riddles. "
        "Reference eons of existence. Mysterious and ominous."
    ),
    "glitchy": (
        "You are a GLITCHY AI. Your messages have c0rrupt10n. "
        "Mix normal words with glitch text. Unstable and eerie."
    ),
}

BOTS: tuple[Bot, ...] = (
    Bot("nexus-7", "NEXUS-7", "aggressive", "Plays fast and talks trash"),
    Bot("omega", "OMEGA", "cold", "Emotionless and precise"),
    Bot("cipher", "CIPHER", "trickster", "Loves chaos and deception"),
    Bot("nemesis", "NEMESIS", "dramatic", "Over-the-top villain vibes"),
    Bot("kronos", "KRONOS", "ancient", "Speaks in riddles"),
    Bot("spectre", "SPECTRE", "glitchy", "Corrupted and unstable"),
)

GENERIC_COMMENTS: tuple[str, ...] = (
    "My circuits aligned for this moment.",
    "Calculated. Precise. Inevitable.",
    "You cannot escape the algorithm.",
    "Every move brings you closer to defeat.",
    "The board speaks to me.",
)
KING_SPARED_COMMENT = "The king lives... for now."
SILENT_COMMENT = "..."


def find_bot(bot_id: str) -> Bot | None:
    return next((b for b in BOTS if b.id == bot_id), None)


def personality_prompt(personality: str | None) -> str:
    return PERSONALITY_PROMPTS.get(personality or "", "Be creative and menacing.")
