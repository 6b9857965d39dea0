"""
Randomness for imposter selection, word draws, speaking order and room codes.

Production rooms use a generator seeded from the ``secrets`` module so that
draws are not predictable from process state. Tests pass an explicit seed to
make every draw reproducible.
"""

import random
import secrets
from collections.abc import Sequence
from typing import TypeVar

SEED_BITS = 128

T = TypeVar("T")


class GameRandom:
    def __init__(self, seed: int | None = None) -> None:
        self.seed = seed if seed is not None else secrets.randbits(SEED_BITS)
        self._random = random.Random(self.seed)  # noqa: S311

    def choice(self, items: Sequence[T]) -> T:
        if not items:
            raise ValueError("cannot choose from an empty sequence")
        return items[self._random.randrange(len(items))]

    def shuffled(self, items: Sequence[T]) -> list[T]:
        """Return a new uniformly shuffled list (Fisher-Yates via random.shuffle)."""
        result = list(items)
        self._random.shuffle(result)
        return result

    def token(self, alphabet: str, length: int) -> str:
        return "".join(alphabet[self._random.randrange(len(alphabet))] for _ in range(length))
