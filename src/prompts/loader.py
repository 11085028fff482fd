"""Prompt and template text files shipped with the service."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

PROMPT_DIR = Path(__file__).resolve().parent


@lru_cache(maxsize=None)
def load_prompt(filename: str) -> str:
    """Load a shipped prompt file, stripped of surrounding whitespace."""

    path = PROMPT_DIR / filename
    if path.parent != PROMPT_DIR or not path.is_file():
        raise RuntimeError(f"Prompt file not found: {filename}")
    return path.read_text(encoding="utf-8").strip()
