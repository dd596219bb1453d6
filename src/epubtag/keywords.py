"""Built-in keyword tables and loaders for user-supplied ones.

A table maps a category name to keyword patterns. Matching is prefix based
(``magic`` also counts ``magical``) and ``*`` stands for exactly one word character
(``wom*n`` counts ``woman`` and ``women``).
"""

from __future__ import annotations

import json
import os
import tomllib
from pathlib import Path
from types import MappingProxyType
from typing import Mapping

from .scoring import ScanTable

GENRES_FILE_ENV = "EPUBTAG_GENRES_FILE"
TAGS_FILE_ENV = "EPUBTAG_TAGS_FILE"


class KeywordConfigError(ValueError):
    """Raised when a keyword table file is missing or has the wrong shape."""


def freeze_table(table: Mapping[str, object]) -> Mapping[str, tuple[str, ...]]:
    """Validate table and return a read-only copy with tuple keyword lists."""
    frozen: dict[str, tuple[str, ...]] = {}
    for name, keywords in table.items():
        if not isinstance(name, str) or not name.strip():
            raise KeywordConfigError(f"Category names must be non-empty strings, got {name!r}.")
        if isinstance(keywords, str) or not isinstance(keywords, (list, tuple)):
            raise KeywordConfigError(f"Keywords for {name!r} must be a list of strings.")
        cleaned: list[str] = []
        for keyword in keywords:
            if not isinstance(keyword, str):
                raise KeywordConfigError(f"Keyword {keyword!r} in {name!r} is not a string.")
            if keyword.strip():
                cleaned.append(keyword.strip())
        frozen[name] = tuple(cleaned)
    return MappingProxyType(frozen)


_GENRES = {
    "Fantasy": ["magic", "wizard", "sorcer*", "spell", "dragon", "elf", "enchant*", "kingdom", "prophecy", "quest"],
    "Science Fiction": ["spaceship", "starship", "planet", "galaxy", "alien", "robot", "android", "laser", "orbit", "futur*"],
    "LitRPG / GameLit": ["level up", "experience points", "skill", "quest log", "inventory", "stat", "class", "dungeon", "respawn"],
    "Wuxia / Xianxia": ["cultivat*", "qi", "sect", "dao", "immortal", "elder", "disciple", "meridian", "martial"],
    "Romance": ["love", "kiss", "heart", "romance", "embrace", "wedding", "passion", "desire", "lover"],
    "Mystery": ["detective", "murder", "clue", "suspect", "investigat*", "alibi", "mystery", "evidence", "witness"],
    "Thriller": ["chase", "danger", "conspiracy", "assassin", "hostage", "escape", "threat", "countdown"],
    "Horror": ["horror", "ghost", "blood", "scream", "monster", "haunt*", "corpse", "terror", "nightmare", "demon"],
    "Historical": ["century", "empire", "king", "queen", "duke", "castle", "war", "ancient", "dynasty"],
    "Comedy": ["laugh", "joke", "funny", "grin", "chuckle", "silly", "absurd", "prank"],
    "Adventure": ["journey", "explore", "treasure", "map", "voyage", "expedition", "island", "jungle"],
    "Slice of Life": ["school", "cafe", "friend", "neighbor", "daily", "routine", "home", "family"],
}

_TAGS = {
    # Fantasy & LitRPG
    "Magic System": ["mana", "spell", "rune", "sorcery", "incantation", "magic"],
    "Dungeon Crawl": ["dungeon", "labyrinth", "floor", "boss", "trap", "loot", "minotaur"],
    "Kingdom Building": ["kingdom", "territory", "manage", "resource", "building", "governance"],
    "Political Intrigue": ["conspiracy", "throne", "court", "noble", "betrayal", "schem*"],
    "Mythical Creatures": ["dragon", "elf", "dwarf", "orc", "goblin", "troll", "griffin"],
    "Reincarnation / Isekai": ["reincarnat*", "another world", "summoned", "isekai", "transmigrat*"],
    "System / Interface": ["system", "interface", "status", "window", "skill", "level up"],
    # Sci-Fi
    "Space Opera": ["fleet", "empire", "galaxy", "starship", "federation", "armada"],
    "Cyberpunk": ["cybernetic", "augment*", "megacorp", "dystopia", "hacker", "netrunner"],
    "Post-Apocalyptic": ["apocalypse", "wasteland", "mutant", "scavenge", "fallout", "ruins"],
    "First Contact": ["alien", "contact", "first", "extraterrestrial", "unidentified", "probe"],
    "Mecha": ["mech", "mecha", "giant robot", "pilot", "hangar", "battlesuit"],
    # Wuxia/Xianxia
    "Cultivation": ["cultivat*", "qi", "dao", "sect", "elixir", "tribulation", "core"],
    "Martial Arts": ["martial", "fist", "kung fu", "technique", "dojo", "master"],
    # Romance
    "Slow Burn Romance": ["slow burn", "tension", "unspoken", "pining", "longing"],
    "Love Triangle": ["triangle", "jealous", "rivalry", "torn between", "two loves"],
    "Enemies to Lovers": ["enemies to lovers", "rival", "hate", "bicker", "antagonize"],
    "Forbidden Love": ["forbidden", "secret love", "star-crossed", "illicit affair", "taboo"],
    "Fake Relationship": ["fake relationship", "pretend", "contract", "arrangement", "false love"],
    # Comedy
    "Satire / Parody": ["satire", "parody", "mock", "lampoon", "irony"],
    "Dark Comedy": ["dark humor", "black comedy", "gallows humor", "morbid", "macabre"],
    "Situational Comedy": ["sitcom", "awkward", "misunderstanding", "shenanigans", "farce"],
    "Slapstick": ["slapstick", "physical comedy", "pratfall", "clumsy", "pie in the face"],
    # General
    "Academy / School Life": ["academy", "school", "student", "teacher", "classmate", "exam"],
    "Warfare": ["war", "battle", "army", "soldier", "strategy", "siege", "military"],
    "Coming of Age": ["grow", "mature", "teenager", "adult", "coming of age"],
    "Revenge Plot": ["revenge", "avenge", "grudge", "betray*", "retribution"],
    "Survival": ["surviv*", "shelter", "forage", "hunt", "wilderness"],
    "Mind Games": ["psychological", "mind game", "outwit", "manipulat*", "intellect"],
    "Weak to Strong": ["weak", "strong", "power up", "train*", "growth", "overcome"],
    "Anti-Hero": ["anti-hero", "morally grey", "vigilante", "ruthless", "unscrupulous"],
    # Mature
    "Harem": ["harem", "polygamy", "concubine", "many loves", "multiple partners"],
    "Erotica / Smut": ["erotic*", "smut", "explicit", "sex scene*", "passion*", "sensual", "intimate"],
    "Graphic Violence / Gore": ["gore", "gory", "brutal", "decapitat*", "mutilat*", "blood", "viscera", "graphic violence"],
    "Mature / Adult Themes": ["mature", "adult", "dark themes", "explicit content", "trigger warning"],
}

GENRE_KEYWORDS = freeze_table(_GENRES)
TAG_KEYWORDS = freeze_table(_TAGS)


def load_keyword_table(path: str | os.PathLike[str]) -> Mapping[str, tuple[str, ...]]:
    """Load a keyword table from a ``.toml`` or ``.json`` file."""
    table_path = Path(path).expanduser()
    try:
        raw = table_path.read_bytes()
    except OSError as exc:
        raise KeywordConfigError(f"Cannot read keyword table {table_path}: {exc}") from exc
    try:
        if table_path.suffix.lower() == ".toml":
            data = tomllib.loads(raw.decode("utf-8"))
        else:
            data = json.loads(raw.decode("utf-8"))
    except (tomllib.TOMLDecodeError, json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise KeywordConfigError(f"Invalid keyword table {table_path}: {exc}") from exc
    if not isinstance(data, dict):
        raise KeywordConfigError(f"Keyword table {table_path} must map categories to keyword lists.")
    return freeze_table(data)


def _table_from(path: str | os.PathLike[str] | None, env_name: str, default: ScanTable) -> ScanTable:
    if path is None:
        path = os.environ.get(env_name) or None
    if path is None:
        return default
    return load_keyword_table(path)


def resolve_tables(
    genres_path: str | os.PathLike[str] | None = None,
    tags_path: str | os.PathLike[str] | None = None,
) -> tuple[ScanTable, ScanTable]:
    """Return (genres, tags); explicit paths win over environment overrides."""
    return (
        _table_from(genres_path, GENRES_FILE_ENV, GENRE_KEYWORDS),
        _table_from(tags_path, TAGS_FILE_ENV, TAG_KEYWORDS),
    )
