"""Step-by-step voice dialogue that collects everything an estimate needs.

One :class:`SessionState` per conversation. :func:`process_input` is the only
way to move it forward; each step has a handler in :data:`_HANDLERS` and a
Swedish prompt in :data:`PROMPTS`. Rejected input never raises: it returns a
:class:`ProcessResult` with ``accepted=False`` and the prompt to repeat.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
import logging
import re
from typing import Any, Callable, Dict, List, Optional

from app.error_messages import (
    EMPTY_INPUT_MESSAGE,
    NO_TASKS_MESSAGE,
    SESSION_COMPLETE_MESSAGE,
    UNCLEAR_CONFIRMATION_MESSAGE,
    incomplete_measurements_message,
    invalid_measurements_message,
)
from app.geometry import geometry_from_measurements, validate_geometry
from app.measurements import Measurements, parse_measurements
from app.task_phrases import TaskPhrase, parse_layer_count, parse_task_phrases
from shared.normalize.text import apply_transcription_fixes

logger = logging.getLogger("malarkalkyl.session")


class ConversationStep(str, Enum):
    AWAITING_CLIENT_NAME = "awaiting_client_name"
    AWAITING_PROJECT_NAME = "awaiting_project_name"
    AWAITING_ROOM_NAME = "awaiting_room_name"
    AWAITING_MEASUREMENTS = "awaiting_measurements"
    COLLECTING_TASKS = "collecting_tasks"
    CONFIRMING = "confirming"
    COMPLETE = "complete"


PROMPTS: Dict[ConversationStep, str] = {
    ConversationStep.AWAITING_CLIENT_NAME: "Vad heter din kund?",
    ConversationStep.AWAITING_PROJECT_NAME: "Tack! Vad heter projektet?",
    ConversationStep.AWAITING_ROOM_NAME: "Vilket rum gäller det?",
    ConversationStep.AWAITING_MEASUREMENTS: (
        "Bra! Nu behöver jag rummets mått. Säg bredd, längd och höjd i meter. "
        "Till exempel: fyra gånger fem gånger två och en halv meter."
    ),
    ConversationStep.COLLECTING_TASKS: (
        "Perfekt! Vilka målningsarbeten ska göras? Säg en uppgift i taget, "
        "till exempel \"måla väggar två lager\" eller \"grundmåla tak\"."
    ),
    ConversationStep.CONFIRMING: (
        "Ska jag skapa kalkylen nu? Säg \"ja\" eller \"lägg till\" för fler arbeten."
    ),
    ConversationStep.COMPLETE: "Din kalkyl är klar!",
}
NEXT_TASK_PROMPT = "Nästa uppgift? Eller säg \"klar\" om du är färdig."

_INTERJECTIONS = r"(?:(?:ja|jo|ok|okej|bra|då|nu|så)\s+)*"
_RE_DONE = re.compile(
    rf"^{_INTERJECTIONS}(?:(?:jag|vi)\s+är\s+|nu\s+är\s+(?:jag|vi)\s+|det\s+är\s+)?"
    r"(?:klar|klara|färdig|färdiga|slut|stopp|det\s+var\s+allt|inga\s+fler(?:\s+arbeten)?)"
    r"(?:\s+(?:nu|då|tack))*$"
)
_RE_ADD_MORE = re.compile(
    rf"^{_INTERJECTIONS}(?:(?:jag|vi)\s+vill\s+)?"
    r"(?:lägga?\s+till|mer|fler|fortsätt|en\s+till|ändra)"
    r"(?:\s+(?:fler|mer|en|ett|några|något|till|arbeten?|uppgifter?))*$"
)
_RE_AFFIRMATIVE = re.compile(
    r"^(?:ja|japp|jajamen|jo|visst|ok|okej|bra|absolut|självklart|kör|gärna)(?!\w)"
    r"|(?<!\w)vill\s+se(?!\w)"
    r"|^(?:inga\s+fler|inget\s+mer)(?!\w)"
)
_NAME_FILLERS = (
    re.compile(r"^(?:ja\s*,?\s*)?(?:kunden|kundens\s+namn|projektet|rummet|det)\s+(?:heter|är)\s+", re.IGNORECASE),
    re.compile(r"^jag\s+vill\s+kalla\s+(?:det|projektet|rummet)\s+", re.IGNORECASE),
    re.compile(r"^(?:jag|vi|det)\s+(?:ska|vill|behöver)\s+(?:måla|renovera)\s+", re.IGNORECASE),
    re.compile(r"^(?:det\s+blir|vi\s+kallar\s+det)\s+", re.IGNORECASE),
)
_RE_TRAILING_PUNCT = re.compile(r"[\s.,!?;:]+$")


class SessionIncompleteError(RuntimeError):
    """Raised when a summary is requested before the dialogue is complete."""


@dataclass
class TaskEntry:
    raw: str
    phrase: str
    layers: Optional[int] = None

    @property
    def display(self) -> str:
        return TaskPhrase(self.phrase, self.layers).display


@dataclass
class SessionState:
    step: ConversationStep = ConversationStep.AWAITING_CLIENT_NAME
    client_name: Optional[str] = None
    project_name: Optional[str] = None
    room_name: Optional[str] = None
    measurements: Optional[Measurements] = None
    tasks: List[TaskEntry] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "step": self.step.value,
            "client_name": self.client_name,
            "project_name": self.project_name,
            "room_name": self.room_name,
            "measurements": self.measurements.to_dict() if self.measurements else None,
            "tasks": [
                {"raw": t.raw, "phrase": t.phrase, "layers": t.layers, "display": t.display}
                for t in self.tasks
            ],
        }


@dataclass(frozen=True)
class ProcessResult:
    accepted: bool
    message: str
    next_prompt: Optional[str]
    step: ConversationStep

    def to_dict(self) -> Dict[str, Any]:
        return {
            "accepted": self.accepted,
            "message": self.message,
            "next_prompt": self.next_prompt,
            "step": self.step.value,
        }


def clean_name(text: str) -> str:
    """Strip spoken filler ("det heter ...") and capitalise the first letter."""

    name = (text or "").strip()
    for pattern in _NAME_FILLERS:
        name = pattern.sub("", name, count=1).strip()
    name = _RE_TRAILING_PUNCT.sub("", name).strip(" \"'")
    if not name:
        return ""
    return name[0].upper() + name[1:]


def is_done_phrase(text: str) -> bool:
    return bool(_RE_DONE.match(apply_transcription_fixes(text)))


def wants_to_add_more(text: str) -> bool:
    return bool(_RE_ADD_MORE.search(apply_transcription_fixes(text)))


def is_affirmative(text: str) -> bool:
    return bool(_RE_AFFIRMATIVE.search(apply_transcription_fixes(text)))


def create_session() -> SessionState:
    return SessionState()


def current_prompt(session: SessionState) -> str:
    if session.step == ConversationStep.COLLECTING_TASKS and session.tasks:
        return NEXT_TASK_PROMPT
    return PROMPTS[session.step]


def is_complete(session: SessionState) -> bool:
    return session.step == ConversationStep.COMPLETE


def reset(session: SessionState) -> None:
    session.step = ConversationStep.AWAITING_CLIENT_NAME
    session.client_name = None
    session.project_name = None
    session.room_name = None
    session.measurements = None
    session.tasks = []


def summary(session: SessionState) -> Dict[str, Any]:
    if not is_complete(session):
        raise SessionIncompleteError(f"session is at step {session.step.value}, not complete")
    return {
        "client_name": session.client_name,
        "project_name": session.project_name,
        "room_name": session.room_name,
        "measurements": session.measurements.to_dict() if session.measurements else None,
        "task_phrases": [task.display for task in session.tasks],
    }


def _accept(session: SessionState, message: str, step: ConversationStep) -> ProcessResult:
    previous = session.step
    session.step = step
    if previous != step:
        logger.info("Session step %s -> %s", previous.value, step.value)
    return ProcessResult(True, message, current_prompt(session), session.step)


def _reject(session: SessionState, message: str) -> ProcessResult:
    return ProcessResult(False, message, current_prompt(session), session.step)


def _name_handler(attr: str, label: str, next_step: ConversationStep):
    def handler(session: SessionState, text: str) -> ProcessResult:
        name = clean_name(text)
        if not name:
            return _reject(session, f"Jag uppfattade inget namn. {PROMPTS[session.step]}")
        setattr(session, attr, name)
        return _accept(session, f"{label}: {name}", next_step)

    return handler


def _format_number(value: Optional[float]) -> str:
    if value is None:
        return "?"
    return f"{value:g}".replace(".", ",")


def _handle_measurements(session: SessionState, text: str) -> ProcessResult:
    measurements = parse_measurements(text)
    if not measurements.is_complete:
        missing = [
            label
            for label, value in (
                ("bredd", measurements.width),
                ("längd", measurements.length),
                ("höjd", measurements.height),
            )
            if value is None
        ]
        return _reject(session, incomplete_measurements_message(missing))
    errors = validate_geometry(geometry_from_measurements(measurements))
    if errors:
        return _reject(session, invalid_measurements_message(errors))
    session.measurements = measurements
    dims = " × ".join(
        _format_number(v) for v in (measurements.width, measurements.length, measurements.height)
    )
    return _accept(session, f"Mått: {dims} meter", ConversationStep.COLLECTING_TASKS)


def _handle_tasks(session: SessionState, text: str) -> ProcessResult:
    if is_done_phrase(text):
        if not session.tasks:
            return _reject(session, NO_TASKS_MESSAGE)
        listed = ", ".join(task.display for task in session.tasks)
        return _accept(
            session,
            f"{len(session.tasks)} arbeten tillagda: {listed}.",
            ConversationStep.CONFIRMING,
        )

    raw = text.strip()
    phrases = parse_task_phrases(raw)
    if phrases:
        added = [TaskEntry(raw=raw, phrase=p.phrase, layers=p.layers) for p in phrases]
    else:
        added = [TaskEntry(raw=raw, phrase=raw, layers=parse_layer_count(raw))]
    session.tasks.extend(added)
    listed = ", ".join(entry.display for entry in added)
    return _accept(
        session,
        f"Lade till: {listed}. Fortsätt eller säg \"klar\".",
        ConversationStep.COLLECTING_TASKS,
    )


def _handle_confirmation(session: SessionState, text: str) -> ProcessResult:
    if wants_to_add_more(text):
        return _accept(session, "Okej, lägg till fler arbeten.", ConversationStep.COLLECTING_TASKS)
    if is_affirmative(text):
        return _accept(session, "Skapar kalkylen...", ConversationStep.COMPLETE)
    return _reject(session, UNCLEAR_CONFIRMATION_MESSAGE)


def _handle_complete(session: SessionState, text: str) -> ProcessResult:
    return ProcessResult(False, SESSION_COMPLETE_MESSAGE, None, session.step)


_HANDLERS: Dict[ConversationStep, Callable[[SessionState, str], ProcessResult]] = {
    ConversationStep.AWAITING_CLIENT_NAME: _name_handler(
        "client_name", "Kund", ConversationStep.AWAITING_PROJECT_NAME
    ),
    ConversationStep.AWAITING_PROJECT_NAME: _name_handler(
        "project_name", "Projekt", ConversationStep.AWAITING_ROOM_NAME
    ),
    ConversationStep.AWAITING_ROOM_NAME: _name_handler(
        "room_name", "Rum", ConversationStep.AWAITING_MEASUREMENTS
    ),
    ConversationStep.AWAITING_MEASUREMENTS: _handle_measurements,
    ConversationStep.COLLECTING_TASKS: _handle_tasks,
    ConversationStep.CONFIRMING: _handle_confirmation,
    ConversationStep.COMPLETE: _handle_complete,
}


def process_input(session: SessionState, text: str) -> ProcessResult:
    """Apply one utterance to *session* and report the transition."""

    if text is None or not text.strip():
        if is_complete(session):
            return ProcessResult(False, EMPTY_INPUT_MESSAGE, None, session.step)
        return _reject(session, EMPTY_INPUT_MESSAGE)
    return _HANDLERS[session.step](session, text)
