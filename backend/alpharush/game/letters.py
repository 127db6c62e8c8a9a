from __future__ import annotations

import random
import string
from collections.abc import Iterable

from .errors import LettersExhausted


LETTERS = tuple(string.ascii_uppercase)


def remaining_letters(used: Iterable[str]) -> list[str]:
    taken = {u.upper() for u in used}
    return [letter for letter in LETTERS if letter not in taken]


def next_letter(used: Iterable[str], rng: random.Random | None = None) -> str:
    """Pick a random letter not in ``used``.

    The caller owns the history and appends the returned letter itself.
    Raises ``LettersExhausted`` once all 26 letters have been drawn.
    """
    remaining = remaining_letters(used)
    if not remaining:
        raise LettersExhausted("all letters have been used")
    return (rng or random).choice(remaining)
