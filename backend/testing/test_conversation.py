from pathlib import Path
import sys

import pytest

BACKEND_ROOT = Path(__file__).resolve().parents[1]
if str(BACKEND_ROOT) not in sys.path:
    sys.path.insert(0, str(BACKEND_ROOT))

from app import conversation
from app.conversation import (
    NEXT_TASK_PROMPT,
    PROMPTS,
    ConversationStep,
    SessionIncompleteError,
    clean_name,
    create_session,
    current_prompt,
    is_complete,
    is_done_phrase,
    process_input,
    summary,
)
from app.error_messages import EMPTY_INPUT_MESSAGE, NO_TASKS_MESSAGE, SESSION_COMPLETE_MESSAGE


HEADER = ["Anna Svensson", "Renovering Storgatan", "vardagsrummet", "fyra gånger fem gånger två och en halv"]


def _run(utterances):
    session = create_session()
    results = [process_input(session, text) for text in utterances]
    return session, results


def test_seven_utterance_dialogue_completes_with_two_tasks() -> None:
    session, results = _run(HEADER + ["måla väggar två lager och grundmåla taket", "klar", "ja"])
    assert all(r.accepted for r in results)
    assert is_complete(session)
    data = summary(session)
    assert data["client_name"] == "Anna Svensson"
    assert data["project_name"] == "Renovering Storgatan"
    assert data["room_name"] == "Vardagsrummet"
    assert data["measurements"]["width"] == 4.0
    assert data["measurements"]["height"] == 2.5
    assert data["task_phrases"] == ["måla väggar (2 lager)", "grundmåla tak (2 lager)"]


def test_eight_utterance_dialogue_ends_the_same_way() -> None:
    session, _ = _run(HEADER + ["måla väggar två lager", "grundmåla taket", "klar", "ja"])
    assert is_complete(session)
    assert summary(session)["task_phrases"] == ["måla väggar (2 lager)", "grundmåla tak"]


def test_done_with_zero_tasks_is_rejected() -> None:
    session, _ = _run(HEADER)
    before = session.to_dict()
    result = process_input(session, "klar")
    assert result.accepted is False
    assert result.message == NO_TASKS_MESSAGE
    assert session.to_dict() == before
    assert session.step is ConversationStep.COLLECTING_TASKS


def test_prompts_follow_the_steps() -> None:
    session = create_session()
    assert current_prompt(session) == PROMPTS[ConversationStep.AWAITING_CLIENT_NAME]
    result = process_input(session, "Anna")
    assert result.next_prompt == "Tack! Vad heter projektet?"
    for text in HEADER[1:]:
        process_input(session, text)
    assert current_prompt(session) == PROMPTS[ConversationStep.COLLECTING_TASKS]
    process_input(session, "måla taket")
    assert current_prompt(session) == NEXT_TASK_PROMPT


def test_empty_input_is_rejected_without_change() -> None:
    session = create_session()
    result = process_input(session, "   ")
    assert result.accepted is False
    assert result.message == EMPTY_INPUT_MESSAGE
    assert session.step is ConversationStep.AWAITING_CLIENT_NAME


def test_incomplete_measurements_are_rejected() -> None:
    session, _ = _run(HEADER[:3])
    result = process_input(session, "bredden är fyra")
    assert result.accepted is False
    assert "längd" in result.message and "höjd" in result.message
    assert session.step is ConversationStep.AWAITING_MEASUREMENTS
    assert session.measurements is None


def test_zero_dimension_is_rejected_and_prompt_repeated() -> None:
    session, _ = _run(HEADER[:3])
    result = process_input(session, "noll gånger fem gånger två")
    assert result.accepted is False
    assert "Bredd måste vara större än 0 m" in result.message
    assert result.next_prompt == PROMPTS[ConversationStep.AWAITING_MEASUREMENTS]
    assert session.step is ConversationStep.AWAITING_MEASUREMENTS
    assert session.measurements is None
    assert process_input(session, "fyra gånger fem gånger två").accepted
    assert session.step is ConversationStep.COLLECTING_TASKS


def test_unreasonable_height_is_rejected() -> None:
    session, _ = _run(HEADER[:3])
    result = process_input(session, "fyra gånger fem gånger tjugo")
    assert result.accepted is False
    assert "Höjd" in result.message
    assert session.step is ConversationStep.AWAITING_MEASUREMENTS


def test_unknown_task_text_is_kept_raw() -> None:
    session, _ = _run(HEADER)
    result = process_input(session, "byta kranen")
    assert result.accepted
    assert [t.phrase for t in session.tasks] == ["byta kranen"]


def test_confirmation_can_return_to_tasks() -> None:
    session, _ = _run(HEADER + ["måla taket", "klar"])
    assert session.step is ConversationStep.CONFIRMING
    unclear = process_input(session, "kanske")
    assert unclear.accepted is False
    assert session.step is ConversationStep.CONFIRMING
    back = process_input(session, "lägg till fler")
    assert back.accepted
    assert session.step is ConversationStep.COLLECTING_TASKS


@pytest.mark.parametrize("reply", ["ja, inga fler", "ja inget mer", "inga fler", "Ja tack"])
def test_negated_more_confirms(reply) -> None:
    session, _ = _run(HEADER + ["måla taket", "klar"])
    result = process_input(session, reply)
    assert result.accepted
    assert session.step is ConversationStep.COMPLETE


@pytest.mark.parametrize("reply", ["lägg till fler", "ja lägg till", "en till", "jag vill lägga till mer"])
def test_add_more_needs_whole_utterance(reply) -> None:
    session, _ = _run(HEADER + ["måla taket", "klar"])
    assert process_input(session, reply).accepted
    assert session.step is ConversationStep.COLLECTING_TASKS


def test_complete_session_rejects_input() -> None:
    session, _ = _run(HEADER + ["måla taket", "klar", "ja"])
    result = process_input(session, "måla golvet")
    assert result.accepted is False
    assert result.message == SESSION_COMPLETE_MESSAGE
    assert result.next_prompt is None
    assert len(session.tasks) == 1


def test_summary_before_completion_raises() -> None:
    session, _ = _run(HEADER)
    with pytest.raises(SessionIncompleteError):
        summary(session)


def test_reset_returns_to_start() -> None:
    session, _ = _run(HEADER + ["måla taket"])
    conversation.reset(session)
    assert session.step is ConversationStep.AWAITING_CLIENT_NAME
    assert session.tasks == []
    assert session.client_name is None


@pytest.mark.parametrize(
    "text, expected",
    [
        ("klar", True),
        ("Klart!", True),
        ("ja nu är jag klar", True),
        ("det var allt", True),
        ("inga fler arbeten", True),
        ("måla klarlack", False),
        ("lacka dörrar när ni är klara", False),
    ],
)
def test_done_detection_matches_whole_utterance(text, expected) -> None:
    assert is_done_phrase(text) is expected


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("det heter Villa Ekbacken.", "Villa Ekbacken"),
        ("kunden heter anna", "Anna"),
        ("  ", ""),
    ],
)
def test_clean_name(raw, expected) -> None:
    assert clean_name(raw) == expected
