from __future__ import annotations

from dataclasses import dataclass


def display_name_for_label(label: str) -> str:
    words = label.replace("_", " ").split(" ")
    return " ".join(word.capitalize() for word in words)


def label_key(display_name: str) -> str:
    """Normalize a class map display name (``"Music"``, ``"Music box"``) to a label key."""
    return "_".join(display_name.strip().lower().replace(",", " ").split())


@dataclass(frozen=True)
class SoundIdentifier:
    label_name: str
    display_name: str

    @classmethod
    def from_label(cls, label_name: str) -> "SoundIdentifier":
        return cls(label_name=label_name, display_name=display_name_for_label(label_name))
