"""Built-in topic and word bank."""

from __future__ import annotations

from typing import TYPE_CHECKING, NamedTuple

if TYPE_CHECKING:
    from imposter.logic.rng import GameRandom

WORD_BANK: dict[str, tuple[str, ...]] = {
    "Fruits": ("Apple", "Mango", "Banana", "Orange", "Grape", "Watermelon", "Strawberry"),
    "Animals": ("Tiger", "Elephant", "Dog", "Cat", "Lion", "Penguin", "Dolphin"),
    "Countries": ("Japan", "Brazil", "France", "Egypt", "Canada", "Australia", "India"),
    "Sports": ("Football", "Basketball", "Tennis", "Swimming", "Golf", "Cricket", "Boxing"),
    "Vehicles": ("Car", "Airplane", "Bicycle", "Motorcycle", "Train", "Helicopter", "Boat"),
    "Professions": ("Doctor", "Teacher", "Chef", "Pilot", "Firefighter", "Police", "Engineer"),
    "Movies": ("Titanic", "Avatar", "Inception", "Frozen", "Jaws", "Matrix", "Rocky"),
    "Food": ("Pizza", "Sushi", "Burger", "Pasta", "Taco", "Curry", "Sandwich"),
}


class WordPick(NamedTuple):
    topic: str
    word: str


def all_pairs(bank: dict[str, tuple[str, ...]] = WORD_BANK) -> list[WordPick]:
    return [WordPick(topic, word) for topic, words in bank.items() for word in words]


def pick_word(
    rng: GameRandom,
    *,
    exclude: WordPick | None = None,
    bank: dict[str, tuple[str, ...]] = WORD_BANK,
) -> WordPick:
    """Draw a topic/word pair uniformly, never returning ``exclude``."""
    candidates = [pair for pair in all_pairs(bank) if pair != exclude]
    if not candidates:
        raise ValueError("word bank has no pair other than the excluded one")
    return rng.choice(candidates)
