# impostor_game/word_packs.py
"""
Word Pack Provider.

Packs are static JSON documents in WORD_PACKS_DIR named <pack_id>.json:

    {"id": "classic", "name": "...", "description": "...",
     "words": ["apple", ...], "close_pairs": {"apple": ["pear", ...]}}

The reserved id "random" merges every pack in the directory. Loading never
fails the caller: any I/O or parse problem yields the built-in default pack.
"""
import json
import logging
import re
from pathlib import Path
from typing import Dict, Iterable, List, Optional

from impostor_game.config import WORD_PACKS_DIR
from impostor_game.models import WordPack

logger = logging.getLogger(__name__)

RANDOM_PACK_ID = "random"
PACK_ID_PATTERN = re.compile(r"^[a-z0-9_-]{1,32}$")
DEFAULT_WORDS = ["apple", "car", "book", "chair", "dog"]


def normalize_word(word) -> str:
    return str(word).strip().lower()


def dedupe_words(words: Iterable) -> List[str]:
    """Normalize and drop duplicates and blanks, keeping first-seen order."""
    seen = set()
    result = []
    for word in words:
        w = normalize_word(word)
        if w and w not in seen:
            seen.add(w)
            result.append(w)
    return result


def _normalize_pairs(raw) -> Dict[str, List[str]]:
    pairs: Dict[str, List[str]] = {}
    if not isinstance(raw, dict):
        return pairs
    for key, values in raw.items():
        k = normalize_word(key)
        if not k or not isinstance(values, list):
            continue
        merged = dedupe_words(pairs.get(k, []) + list(values))
        pairs[k] = [w for w in merged if w != k]
    return pairs


def default_pack(pack_id: str = "default") -> WordPack:
    return WordPack(pack_id=pack_id, words=list(DEFAULT_WORDS), name="Default")


class WordPackProvider:
    def __init__(self, packs_dir: Optional[Path] = None):
        self.packs_dir = Path(packs_dir or WORD_PACKS_DIR)

    def available_packs(self) -> List[str]:
        if not self.packs_dir.is_dir():
            return []
        return sorted(p.stem for p in self.packs_dir.glob("*.json") if p.stem != RANDOM_PACK_ID)

    def _read(self, pack_id: str) -> WordPack:
        path = self.packs_dir / f"{pack_id}.json"
        with open(path, encoding="utf-8") as fh:
            data = json.load(fh)
        if not isinstance(data, dict):
            raise ValueError(f"pack {pack_id!r} is not a JSON object")
        words = dedupe_words(data.get("words") or [])
        if not words:
            raise ValueError(f"pack {pack_id!r} has no words")
        return WordPack(
            pack_id=pack_id,
            words=words,
            close_pairs=_normalize_pairs(data.get("close_pairs")),
            name=data.get("name", pack_id),
            description=data.get("description", ""),
        )

    def _aggregate(self) -> WordPack:
        words: List[str] = []
        pairs: Dict[str, List[str]] = {}
        for pack_id in self.available_packs():
            try:
                pack = self._read(pack_id)
            except (OSError, ValueError) as e:
                logger.warning("Skipping pack %s in random aggregate: %s", pack_id, e)
                continue
            words.extend(pack.words)
            for key, values in pack.close_pairs.items():
                pairs[key] = dedupe_words(pairs.get(key, []) + values)
        words = dedupe_words(words)
        if not words:
            raise ValueError("no packs available to aggregate")
        return WordPack(pack_id=RANDOM_PACK_ID, words=words, close_pairs=pairs, name="Random")

    def load(self, pack_id: str) -> WordPack:
        """Load a pack by id, falling back to the default list on any failure."""
        if not PACK_ID_PATTERN.match(pack_id or ""):
            logger.warning("⚠️ Invalid pack id %r, using default words", pack_id)
            return default_pack(pack_id or "default")
        try:
            if pack_id == RANDOM_PACK_ID:
                return self._aggregate()
            return self._read(pack_id)
        except (OSError, ValueError) as e:
            # json.JSONDecodeError is a ValueError
            logger.warning("⚠️ Could not load word pack %s (%s), using default words", pack_id, e)
            return default_pack(pack_id)
