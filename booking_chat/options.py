"""Matching free-text answers against the numbered options offered to the patient."""

from collections.abc import Sequence
from typing import TypeVar

from booking_chat.config import DISPLAY_LIMIT
from booking_chat.models import BaseOption

OptionT = TypeVar("OptionT", bound=BaseOption)


def resolve_choice(message: str, options: Sequence[OptionT]) -> OptionT | None:
    """Pick the option the patient meant, or ``None`` if nothing matches.

    Tried in order: 1-based ordinal, exact id, exact label, label substring.
    Comparisons other than the ordinal are case-insensitive.
    """
    if not options:
        return None

    trimmed = message.strip()
    if not trimmed:
        return None

    try:
        ordinal = int(trimmed)
    except ValueError:
        ordinal = None
    if ordinal is not None and 1 <= ordinal <= len(options):
        return options[ordinal - 1]

    normalized = trimmed.lower()
    for matches in (
        lambda opt: opt.id.lower() == normalized,
        lambda opt: opt.label.lower() == normalized,
        lambda opt: normalized in opt.label.lower(),
    ):
        found = next((opt for opt in options if matches(opt)), None)
        if found is not None:
            return found
    return None


def format_option_list(options: Sequence[BaseOption], limit: int = DISPLAY_LIMIT) -> str:
    lines = []
    for index, opt in enumerate(options[:limit], start=1):
        suffix = f" – {opt.detail}" if opt.detail else ""
        lines.append(f"{index}. {opt.label}{suffix}")
    return "\n".join(lines)
