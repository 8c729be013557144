from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, TextIO

from app import conversation
from app.error_messages import geometry_error_message
from app.formatter import render_estimate_text
from app.geometry import GeometryValidationError, geometry_from_measurements
from app.measurements import Measurements, parse_measurements
from app.pricing import PricingConfig
from app.services.estimate_builder import Estimate, compute_estimate
from app.task_phrases import parse_task_phrases
from catalog import CatalogIndex
from catalog.loader import CatalogLoadError, load_catalog_file
from shared.normalize.numerals import resolve_numerals

DEFAULT_CATALOG = Path(__file__).resolve().parents[1] / "data" / "catalog.yaml"


class CLIError(Exception):
    """Raised when user input is invalid."""


def _load_index(path: str) -> CatalogIndex:
    try:
        return CatalogIndex(load_catalog_file(path))
    except CatalogLoadError as exc:
        details = "; ".join(exc.errors)
        raise CLIError(f"{exc}: {details}" if details else str(exc)) from exc


def _pricing(args: argparse.Namespace) -> PricingConfig:
    return PricingConfig(
        labor_price_per_hour=args.labor_price,
        global_markup_pct=args.markup,
    )


def _emit(args: argparse.Namespace, payload: Dict[str, Any], text: str) -> None:
    if args.json:
        print(json.dumps(payload, ensure_ascii=False, indent=2))
    else:
        print(text, end="" if text.endswith("\n") else "\n")


def _estimate_for(
    measurements: Measurements,
    phrases: List[str],
    args: argparse.Namespace,
) -> Estimate:
    index = _load_index(args.catalog)
    try:
        geometry = geometry_from_measurements(measurements)
        return compute_estimate(geometry, phrases, index, _pricing(args))
    except GeometryValidationError as exc:
        raise CLIError(geometry_error_message(exc.errors)) from exc


def _read_utterances(source: TextIO) -> Iterable[str]:
    for line in source:
        text = line.strip()
        if text and not text.startswith("#"):
            yield text


def cmd_converse(args: argparse.Namespace) -> None:
    if args.input:
        path = Path(args.input)
        if not path.exists():
            raise CLIError(f"File not found: {path}")
        with path.open("r", encoding="utf-8") as handle:
            lines = list(_read_utterances(handle))
    else:
        lines = list(_read_utterances(sys.stdin))

    session = conversation.create_session()
    transcript: List[Dict[str, Any]] = []
    for text in lines:
        prompt = conversation.current_prompt(session)
        result = conversation.process_input(session, text)
        transcript.append({"prompt": prompt, "input": text, **result.to_dict()})
        if not args.json:
            print(f"? {prompt}")
            print(f"> {text}")
            print(f"  {result.message}")
        if conversation.is_complete(session):
            break

    if not conversation.is_complete(session):
        raise CLIError(f"Dialogen tog slut innan kalkylen var klar (steg: {session.step.value}).")

    header = conversation.summary(session)
    estimate = _estimate_for(session.measurements, header["task_phrases"], args)
    text = render_estimate_text(estimate, header)
    if not args.json:
        print()
    _emit(
        args,
        {"transcript": transcript, "summary": header, "estimate": estimate.to_dict()},
        text,
    )


def cmd_estimate(args: argparse.Namespace) -> None:
    if not args.task:
        raise CLIError("Minst ett --task krävs.")
    measurements = Measurements(
        width=args.width,
        length=args.length,
        height=args.height,
        doors=args.doors,
        windows=args.windows,
    )
    estimate = _estimate_for(measurements, list(args.task), args)
    _emit(args, {"estimate": estimate.to_dict()}, render_estimate_text(estimate))


def cmd_catalog_stats(args: argparse.Namespace) -> None:
    index = _load_index(args.catalog)
    stats = index.stats()
    if args.json:
        print(json.dumps(stats, ensure_ascii=False, indent=2))
        return
    print(f"Catalog {args.catalog}:")
    for key, value in stats.items():
        print(f"- {key}: {value}")


def cmd_parse(args: argparse.Namespace) -> None:
    text = " ".join(args.text).strip()
    if not text:
        raise CLIError("Ingen text att tolka.")
    payload = {
        "input": text,
        "numerals": resolve_numerals(text),
        "measurements": parse_measurements(text).to_dict(),
        "tasks": [{"phrase": p.phrase, "layers": p.layers, "display": p.display} for p in parse_task_phrases(text)],
    }
    if args.json:
        print(json.dumps(payload, ensure_ascii=False, indent=2))
        return
    print(f"numerals:     {payload['numerals']}")
    print(f"measurements: {payload['measurements']}")
    print(f"tasks:        {', '.join(t['display'] for t in payload['tasks']) or '-'}")


def build_parser() -> argparse.ArgumentParser:
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--catalog", default=str(DEFAULT_CATALOG), help="Catalog YAML/JSON file.")
    common.add_argument("--json", action="store_true", help="Print JSON instead of text.")
    common.add_argument("--labor-price", dest="labor_price", type=float, default=500.0)
    common.add_argument("--markup", type=float, default=10.0, help="Global markup in percent.")

    parser = argparse.ArgumentParser(description="Painting estimates from spoken Swedish input.")
    subparsers = parser.add_subparsers(dest="command", required=True)

    converse = subparsers.add_parser(
        "converse", parents=[common], help="Run the dialogue over utterances from a file or stdin."
    )
    converse.add_argument("--input", default=None, help="One utterance per line; stdin when omitted.")
    converse.set_defaults(func=cmd_converse)

    estimate = subparsers.add_parser("estimate", parents=[common], help="Estimate from dimensions and tasks.")
    estimate.add_argument("--width", type=float, required=True)
    estimate.add_argument("--length", type=float, required=True)
    estimate.add_argument("--height", type=float, required=True)
    estimate.add_argument("--doors", type=int, default=1)
    estimate.add_argument("--windows", type=int, default=1)
    estimate.add_argument("--task", action="append", default=[], help="Task phrase; repeatable.")
    estimate.set_defaults(func=cmd_estimate)

    stats = subparsers.add_parser("catalog-stats", parents=[common], help="Show catalog statistics.")
    stats.set_defaults(func=cmd_catalog_stats)

    parse = subparsers.add_parser("parse", parents=[common], help="Show how an utterance is parsed.")
    parse.add_argument("text", nargs="+")
    parse.set_defaults(func=cmd_parse)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        args.func(args)
    except CLIError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
