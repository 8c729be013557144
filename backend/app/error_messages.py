"""Unified, friendly Swedish messages for the dialogue and the estimate.

Each helper returns plain text in the same calm, helpful tone so the voice
flow, the HTTP API and the CLI share one wording.
"""

from __future__ import annotations

from typing import Iterable, Optional


def _bullet_list(items: Iterable[str]) -> str:
    return "\n".join(f"- {item}" for item in items)


EMPTY_INPUT_MESSAGE = "Jag hörde inget. Kan du säga det igen?"
SESSION_COMPLETE_MESSAGE = "Kalkylen är redan klar. Starta en ny session för ett nytt rum."
UNCLEAR_CONFIRMATION_MESSAGE = (
    "Jag förstod inte riktigt. Säg \"ja\" för att skapa kalkylen eller "
    "\"lägg till\" för fler arbeten."
)
NO_TASKS_MESSAGE = "Du har inte lagt till några arbeten än. Vilket arbete ska göras?"


def incomplete_measurements_message(missing: Iterable[str]) -> str:
    """Reply when width, length or height could not be heard."""
    cleaned = [m for m in missing if m]
    if not cleaned:
        return "Jag uppfattade inte måtten. Säg till exempel \"fyra gånger fem gånger två och en halv\"."
    return (
        "Jag saknar några mått:\n"
        f"{_bullet_list(cleaned)}\n\n"
        "Säg alla tre, till exempel \"fyra gånger fem gånger två och en halv\"."
    )


def unmapped_task_warning(phrase: str, suggestions: Optional[Iterable[str]] = None) -> str:
    """Estimate warning for a phrase with no catalog match."""
    text = f"Kunde inte hitta uppgiften \"{phrase}\" i katalogen. Uppgiften hoppades över."
    cleaned = [s.strip() for s in (suggestions or []) if s and s.strip()]
    if cleaned:
        text += " Menade du: " + ", ".join(f"\"{s}\"" for s in cleaned) + "?"
    return text


def zero_quantity_warning(task_name: str, task_id: str) -> str:
    return f"Hoppar över \"{task_name}\" ({task_id}) eftersom kvantiteten är 0 för denna yta."


def low_confidence_warning(phrase: str, task_name: str, confidence: float) -> str:
    return (
        f"Låg matchningssäkerhet ({confidence * 100:.0f}%) för \"{phrase}\" → "
        f"\"{task_name}\". Kontrollera att detta är rätt uppgift."
    )


def invalid_measurements_message(errors: Iterable[str]) -> str:
    """Reply when the spoken room dimensions are out of range."""
    cleaned = [e.strip() for e in errors if e and e.strip()]
    return (
        "Måtten går inte att använda:\n"
        f"{_bullet_list(cleaned)}\n\n"
        "Säg alla tre igen, till exempel \"fyra gånger fem gånger två och en halv\"."
    )


def geometry_error_message(errors: Iterable[str]) -> str:
    """Reply when the room dimensions cannot be used for a calculation."""
    cleaned = [e.strip() for e in errors if e and e.strip()]
    if not cleaned:
        return "Rummets mått är ogiltiga. Kontrollera bredd, längd och höjd."
    return (
        "Kalkylen kan inte skapas ännu\n\n"
        "Rummets mått behöver rättas:\n"
        f"{_bullet_list(cleaned)}"
    )
