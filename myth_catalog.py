# myth_catalog.py
"""Catalogue of selectable myth blocks, moods and naming rules."""

from __future__ import annotations

from dataclasses import dataclass

from models.request_models import MythCategory, MythMood


@dataclass(frozen=True)
class MythBlock:
    id: str
    name: str
    description: str

    @property
    def is_custom(self) -> bool:
        return "-custom" in self.id


def _blocks(*rows: tuple[str, str, str]) -> dict[str, MythBlock]:
    return {row[0]: MythBlock(*row) for row in rows}


MYTH_BLOCKS: dict[MythCategory, dict[str, MythBlock]] = {
    MythCategory.COSMOLOGY: _blocks(
        ("cos-chaos", "Universe Born from Chaos", "The beginning where everything emerges from a formless void or primordial waters."),
        ("cos-body", "Giant's Body", "The world created from the body of a slain primordial giant."),
        ("cos-egg", "Cosmic Egg", "The entire universe or life emerging by cracking from an egg."),
        ("cos-breath", "Divine Breath", "The world spoken or breathed into existence by a divine voice or wind."),
        ("cos-music", "Cosmic Symphony", "Reality created through divine music, harmony, or vibration."),
        ("cos-dream", "The Great Dream", "The universe as the dream of a sleeping cosmic entity."),
        ("cos-dance", "Dance of Creation", "The world formed through the eternal dance of cosmic forces."),
        ("cos-custom", "Custom Origin", "Create your own unique cosmological origin story."),
    ),
    MythCategory.GODS: _blocks(
        ("god-pantheon", "Pantheon", "A polytheistic system with interconnected gods having divided responsibilities."),
        ("god-creator", "Single Creator", "An absolute and singular divine power that creates everything."),
        ("god-spirits", "Nature Spirits", "Mountains, rivers, and forests have their own conscious spirits."),
        ("god-dual", "Dual Forces", "Two opposing divine powers: light and dark, order and chaos."),
        ("god-ancestral", "Ancestral Gods", "Deified ancestors who guide and protect their descendants."),
        ("god-elemental", "Elemental Lords", "Divine beings who embody and control the fundamental elements."),
        ("god-forgotten", "Forgotten Deity", "An ancient god whose name and worship have been lost to time."),
        ("god-custom", "Custom Divine", "Design your own divine hierarchy or pantheon."),
    ),
    MythCategory.BEINGS: _blocks(
        ("being-giants", "Humans and Giants", "Humanity's relationship with the giants who preceded them: their civilization, the power balance between the two peoples and what humans inherited from them."),
        ("being-angels", "Angels and Djinn", "Beings beyond the visible world who intervene in human destiny and perceive time differently."),
        ("being-monsters", "Creatures and Monsters", "Manifestations of nature or chaos that heroes must confront, with their ecological roles and behaviors."),
        ("being-dragons", "Ancient Dragons", "Wise serpentine beings who hoard knowledge and treasure and shaped history."),
        ("being-fae", "Fae Folk", "Otherworldly beings with their own alien morality, bargains and magic."),
        ("being-titans", "Primordial Titans", "Ancient beings of immense power who shaped the early world and then fell."),
        ("being-shapeshifters", "Shapeshifters", "Beings who take human, animal or elemental forms and struggle with identity."),
        ("being-custom", "Custom Beings", "Create your own unique mythological creatures."),
    ),
    MythCategory.ARCHETYPE: _blocks(
        ("arc-journey", "Hero's Journey", "A character who answers a call, faces challenges, and returns transformed."),
        ("arc-shadow", "Confronting the Shadow", "The protagonist's struggle with their own dark aspects or an enemy."),
        ("arc-trickster", "Trickster", "A figure who breaks rules, disrupts order, and causes unexpected changes."),
        ("arc-mentor", "The Wise Mentor", "An experienced guide who teaches and prepares the hero for their destiny."),
        ("arc-guardian", "The Guardian", "A protector who stands between their people and ancient threats."),
        ("arc-redeemer", "The Redeemer", "One who seeks to atone for past sins or restore what was lost."),
        ("arc-prophet", "The Prophet", "A visionary who sees the future and warns of coming change."),
        ("arc-custom", "Custom Archetype", "Design your own character archetype or role."),
    ),
    MythCategory.THEMES: _blocks(
        ("theme-fate", "Fate and Free Will", "The tension between characters resisting or accepting their destiny."),
        ("theme-love", "Love and Betrayal", "Love as a creative or destructive force and the disloyalty it brings."),
        ("theme-sacrifice", "Sacrifice", "Giving up something for a greater purpose, community, or divine grace."),
        ("theme-cycle", "Eternal Cycles", "The endless repetition of death and rebirth, seasons, or ages."),
        ("theme-knowledge", "Forbidden Knowledge", "The price of seeking truths that were meant to remain hidden."),
        ("theme-exile", "Exile and Return", "Banishment from home and the quest to earn the right to return."),
        ("theme-transformation", "Transformation", "Profound change through trial, magic, or divine intervention."),
        ("theme-custom", "Custom Theme", "Explore your own thematic element or concept."),
    ),
    MythCategory.SYMBOLS: _blocks(
        ("sym-tree", "Sacred Tree", "An axis connecting worlds, representing life and wisdom."),
        ("sym-fire", "Fire", "An element stolen from gods, symbolizing enlightenment and purification."),
        ("sym-water", "Water", "The source of chaos, the unconscious, purification, and rebirth."),
        ("sym-mirror", "The Mirror", "Reflection of truth, self-knowledge, or passage between worlds."),
        ("sym-sword", "The Divine Sword", "A weapon of justice or the power to cut through illusion."),
        ("sym-crown", "The Crown", "Divine authority, burden of leadership, or the price of power."),
        ("sym-labyrinth", "The Labyrinth", "A complex path representing the journey to understanding."),
        ("sym-custom", "Custom Symbol", "Create your own meaningful symbol or motif."),
    ),
    MythCategory.SOCIAL_CODES: _blocks(
        ("soc-tyranny", "Tyrannical Rule", "The hero's rebellion against an unjust king or oppressive system."),
        ("soc-tradition", "Pressure of Traditions", "Society's rigid rules hindering individual desire or destiny."),
        ("soc-taboo", "Breaking Taboos", "A character breaking divine or social taboos and their consequences."),
        ("soc-honor", "Code of Honor", "A strict moral code that defines acceptable behavior and demands satisfaction."),
        ("soc-caste", "Caste System", "Rigid social hierarchy where birth determines one's place and possibilities."),
        ("soc-exile", "Social Exile", "Banishment or ostracism as punishment for violating community norms."),
        ("soc-ritual", "Sacred Rituals", "Ceremonial practices that maintain cosmic order and social bonds."),
        ("soc-custom", "Custom Social Code", "Design your own social rules or cultural norms."),
    ),
}

MOOD_DESCRIPTIONS: dict[MythMood, str] = {
    MythMood.MYSTICAL: "balanced and classic mythological style",
    MythMood.GOTHIC: "in a dark and mysterious atmosphere, with gothic elements",
    MythMood.FAIRYTALE: "in a fairytale style, suitable for children",
    MythMood.SCIFI: "adding science fiction elements, with a futuristic approach",
    MythMood.ROMANTIC: "highlighting romantic elements, with a love theme",
    MythMood.DRAMATIC: "with intense emotional conflicts and dramatic events",
    MythMood.DARK: "with a pessimistic and dark tone",
    MythMood.LIGHT: "in an optimistic and bright atmosphere",
    MythMood.EPIC: "epic and large-scale",
    MythMood.TRAGIC: "with a tragic end and sadness",
    MythMood.COMIC: "with funny and humorous elements",
    MythMood.MYSTERIOUS: "with mysterious and enigmatic elements",
    MythMood.HEROIC: "with heroic and valiant themes",
    MythMood.HOPEFUL: "with hopeful and optimistic themes",
    MythMood.ANCIENT: "with ancient and timeless themes",
    MythMood.STANDARD: "in a standard mythological style",
}

# Well-known figures from existing mythologies that generated myths must not reuse.
FORBIDDEN_NAMES: tuple[str, ...] = (
    "atlas", "helios", "selene", "zeus", "thor", "odin", "anubis", "shiva",
    "apollo", "artemis", "aphrodite", "ares", "athena", "hades", "poseidon",
    "demeter", "hera", "hestia", "hermes", "dionysus",
)

GENERIC_ENTITY_NAMES: frozenset[str] = frozenset(
    {"god", "hero", "monster", "spirit", "demon", "angel", "human"}
)

MIN_ENTITY_NAME_LENGTH = 3
MIN_VOCABULARY_WORD_LENGTH = 3


def get_block(category: MythCategory, block_id: str) -> MythBlock | None:
    return MYTH_BLOCKS.get(category, {}).get(block_id)


def describe_selection(
    category: MythCategory, block_id: str, custom_description: str | None = None
) -> str:
    """Return the prompt line for one category choice."""
    block = get_block(category, block_id)
    if block is None:
        # Unknown ids are passed through so callers can use their own blocks.
        line = block_id
    else:
        line = f"{block.name}: {block.description}"
    if custom_description and ("-custom" in block_id or block is None):
        line += f'\nMANDATORY CUSTOM REQUIREMENT: "{custom_description}"'
    elif custom_description:
        line += f'\nADDITIONAL REQUIREMENT: "{custom_description}"'
    return line
