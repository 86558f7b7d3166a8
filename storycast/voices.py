"""Speech voices and per-format voice presets.

The speech provider accepts six named voices and a speed multiplier in
[0.25, 4.0].
"""

from __future__ import annotations

from typing import Literal, get_args

Voice = Literal["alloy", "echo", "fable", "onyx", "nova", "shimmer"]
VOICES: tuple[str, ...] = get_args(Voice)

MIN_SPEED = 0.25
MAX_SPEED = 4.0

PRESETS: dict[str, dict[str, tuple[str, float]]] = {
    "narrative": {"narrator": ("onyx", 1.0)},
    "interview": {"host": ("onyx", 1.0), "guest": ("echo", 0.95)},
    "debate": {
        "moderator": ("alloy", 1.0),
        "position1": ("fable", 0.98),
        "position2": ("nova", 0.98),
    },
    "adventure": {"narrator": ("shimmer", 0.95)},
}

# Historical figures whose guest voice should differ from the default.
GUEST_VOICE_OVERRIDES: dict[str, str] = {
    "Albert Einstein": "fable",
    "Leonardo da Vinci": "onyx",
    "Benjamin Franklin": "echo",
    "Nikola Tesla": "fable",
    "Charles Darwin": "onyx",
    "Isaac Newton": "fable",
    "Galileo Galilei": "echo",
    "Napoleon Bonaparte": "onyx",
    "Abraham Lincoln": "onyx",
    "Martin Luther King Jr.": "onyx",
    "Winston Churchill": "fable",
    "Mahatma Gandhi": "echo",
    "Cleopatra VII": "shimmer",
    "Marie Curie": "nova",
    "Ada Lovelace": "shimmer",
    "Florence Nightingale": "nova",
    "Harriet Tubman": "shimmer",
    "Rosa Parks": "nova",
    "Eleanor Roosevelt": "shimmer",
    "Amelia Earhart": "nova",
    "Joan of Arc": "shimmer",
    "Queen Elizabeth I": "nova",
}


def is_valid_voice(voice: str) -> bool:
    return voice in VOICES


def guest_voice(guest_name: str | None) -> str:
    default = PRESETS["interview"]["guest"][0]
    if not guest_name:
        return default
    return GUEST_VOICE_OVERRIDES.get(guest_name, default)


def preset(format: str, role: str) -> tuple[str, float]:
    """(voice, speed) for a role in a format, e.g. preset("debate", "moderator")."""
    return PRESETS[format][role]


def check_speed(speed: float) -> float:
    if not MIN_SPEED <= speed <= MAX_SPEED:
        raise ValueError(f"Speech speed must be between {MIN_SPEED} and {MAX_SPEED}, got {speed}")
    return speed
