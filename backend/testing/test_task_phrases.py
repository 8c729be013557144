from pathlib import Path
import sys

import pytest

BACKEND_ROOT = Path(__file__).resolve().parents[1]
if str(BACKEND_ROOT) not in sys.path:
    sys.path.insert(0, str(BACKEND_ROOT))

from app.task_phrases import (
    TaskPhrase,
    parse_layer_count,
    parse_task_phrases,
    resolve_surface_type,
    expand_shared_verbs,
    strip_layer_words,
)
from catalog.records import Surface


def _phrases(text: str):
    return [p.phrase for p in parse_task_phrases(text)]


def test_single_task_with_layers() -> None:
    result = parse_task_phrases("måla väggar två lager")
    assert result == [TaskPhrase("måla väggar", 2)]
    assert result[0].display == "måla väggar (2 lager)"


def test_specific_pattern_consumes_words() -> None:
    assert _phrases("grundmåla taket") == ["grundmåla tak"]


def test_two_tasks_in_spoken_order() -> None:
    assert _phrases("jag ska spackla väggarna och sedan måla taket") == ["spackla väggar", "måla tak"]


def test_layer_count_applies_to_all_phrases() -> None:
    result = parse_task_phrases("måla väggar och måla taket två strykningar")
    assert [(p.phrase, p.layers) for p in result] == [("måla väggar", 2), ("måla tak", 2)]


def test_one_verb_covers_joined_surfaces() -> None:
    result = parse_task_phrases("måla om alla väggar och taket tre lager")
    assert [(p.phrase, p.layers) for p in result] == [("måla väggar", 3), ("måla tak", 3)]
    assert _phrases("grundmåla taket och väggarna") == ["grundmåla tak", "grundmåla väggar"]
    assert _phrases("måla väggarna och taket och taklisterna") == ["måla väggar", "måla tak", "måla lister"]


def test_expand_shared_verbs_leaves_other_verbs_alone() -> None:
    assert expand_shared_verbs("måla väggar och tak") == "måla väggar och måla tak"
    assert expand_shared_verbs("spackla väggarna och sedan måla taket") == "spackla väggarna och sedan måla taket"


def test_transcription_fixes_run_first() -> None:
    assert _phrases("målarbänkar") == ["måla väggar"]


def test_trim_is_not_ceiling() -> None:
    assert _phrases("måla taklisterna") == ["måla lister"]


def test_unknown_utterance_gives_empty_list() -> None:
    assert parse_task_phrases("byta kranen i köket") == []
    assert parse_task_phrases("") == []


@pytest.mark.parametrize(
    "text, expected",
    [
        ("två lager", 2),
        ("3 strykningar", 3),
        ("(2 lager)", 2),
        ("en gång", 1),
        ("noll lager", None),
        ("måla väggar", None),
    ],
)
def test_parse_layer_count(text, expected) -> None:
    assert parse_layer_count(text) == expected


def test_strip_layer_words() -> None:
    assert strip_layer_words("måla väggar (2 lager)") == "måla väggar"
    assert strip_layer_words("Måla tak två strykningar") == "måla tak"


@pytest.mark.parametrize(
    "text, surface",
    [
        ("måla väggar", Surface.VAGG),
        ("grundmåla tak", Surface.TAK),
        ("måla taklister", Surface.LIST),
        ("måla golv", Surface.GOLV),
        ("lacka dörrar", Surface.DORR),
        ("måla fönster", Surface.FONSTER),
        ("slipa", None),
    ],
)
def test_resolve_surface_type(text, surface) -> None:
    assert resolve_surface_type(text) == surface
