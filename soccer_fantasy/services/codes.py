"""
Join codes for private rooms.

Codes look like GOAL-RED-7: a football word, a colour and a number 1-99.
generate_unique_code retries a bounded number of times against existing codes,
then falls back to a timestamp code (ROOM-123456) that is suffixed until unique.
"""
from __future__ import annotations

import random
from typing import Callable

from soccer_fantasy.clock import Clock, SystemClock, epoch_millis
from soccer_fantasy.logging_config import get_logger

logger = get_logger(__name__)

FOOTBALL_WORDS = (
    "SOCCER", "GOAL", "KICK", "PASS", "DRIBBLE", "TACKLE", "SAVE", "SCORE",
    "PITCH", "FIELD", "BALL", "NET", "POST", "CORNER", "FREE", "PENALTY",
)

COLORS = (
    "RED", "BLUE", "GREEN", "YELLOW", "BLACK", "WHITE", "GOLD", "SILVER",
    "ORANGE", "PURPLE", "PINK", "BROWN", "GRAY", "CYAN", "LIME", "NAVY",
)

DEFAULT_MAX_ATTEMPTS = 10


def generate_code(rng: random.Random | None = None) -> str:
    """One memorable code. Not checked for uniqueness."""
    r = rng or random
    word = r.choice(FOOTBALL_WORDS)
    color = r.choice(COLORS)
    number = r.randint(1, 99)
    return f"{word}-{color}-{number}"


def fallback_code(clock: Clock) -> str:
    return f"ROOM-{str(epoch_millis(clock.now()))[-6:]}"


def generate_unique_code(
    code_exists: Callable[[str], bool],
    rng: random.Random | None = None,
    clock: Clock | None = None,
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
) -> str:
    """
    Friendly code that code_exists() rejects for no existing room.
    After max_attempts collisions, use the timestamp fallback.
    """
    for _ in range(max_attempts):
        code = generate_code(rng)
        if not code_exists(code):
            return code

    base = fallback_code(clock or SystemClock())
    code = base
    suffix = 1
    while code_exists(code):
        suffix += 1
        code = f"{base}-{suffix}"
    logger.warning("Code space exhausted after %d attempts; using fallback %s", max_attempts, code)
    return code
