"""Generate a startlist from a JSON request and write the timing-system CSV.

Ranking files are given per class as ``CLASS=path.csv``; a class loaded this
way is marked as having ranking data for its start-order rule.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Dict, List, Optional

from pydantic import ValidationError

from startlist_core.errors import StartlistError
from startlist_core.export import CSV_HEADER, CSV_HEADER_JA, startlist_to_csv
from startlist_core.models import StartOrderRule
from startlist_core.payloads import StartlistRequest
from startlist_core.policy import SEEDED_RANDOM_POLICY, SEEDED_RANDOM_UNCONSTRAINED_POLICY
from startlist_core.ranking import parse_ranking_csv
from startlist_core.startlist import generate_startlist


def _parse_args(argv: Optional[List[str]]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("request", type=Path, help="JSON generation request")
    parser.add_argument("--output", type=Path, help="CSV destination (stdout when omitted)")
    parser.add_argument("--snapshot", type=Path, help="also write the startlist snapshot as JSON")
    parser.add_argument("--status", default="draft", help="status recorded in the snapshot")
    parser.add_argument(
        "--ranking",
        action="append",
        default=[],
        metavar="CLASS=PATH",
        help="ranking CSV for one class; may be repeated",
    )
    parser.add_argument("--japanese-header", action="store_true", help="use the Japanese CSV header")
    parser.add_argument("--verbose", action="store_true")
    return parser.parse_args(argv)


def _load_rankings(items: List[str]) -> Dict[str, Dict[str, int]]:
    rankings: Dict[str, Dict[str, int]] = {}
    for item in items:
        class_id, separator, path = item.partition("=")
        if not separator or not class_id.strip() or not path.strip():
            raise ValueError(f"ranking must be given as CLASS=PATH, got {item!r}")
        text = Path(path.strip()).read_text(encoding="utf-8-sig")
        rankings[class_id.strip()] = parse_ranking_csv(text)
    return rankings


def main(argv: Optional[List[str]] = None) -> int:
    args = _parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        request = StartlistRequest.model_validate(json.loads(args.request.read_text(encoding="utf-8")))
        file_rankings = _load_rankings(args.ranking)
    except (OSError, ValueError, ValidationError, StartlistError) as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return 1

    rankings: Dict[str, Dict[str, int]] = {**request.ranking_by_class, **file_rankings}
    start_order_rules = []
    for rule in request.to_start_order_rules():
        if not rule.csv_name and rankings.get(rule.class_id.strip()):
            source = "request" if rule.class_id.strip() not in file_rankings else "ranking-file"
            rule = StartOrderRule(class_id=rule.class_id, method=rule.method, csv_name=source)
        start_order_rules.append(rule)
    entries = request.to_entries()
    policy = SEEDED_RANDOM_POLICY if request.avoid_consecutive_clubs else SEEDED_RANDOM_UNCONSTRAINED_POLICY

    try:
        plan = generate_startlist(
            entries,
            request.settings,
            split_rules=request.to_split_rules(),
            start_order_rules=start_order_rules,
            rankings=rankings,
            startlist_id=request.startlist_id,
            seed=request.seed,
            policy=policy,
        )
        rows = plan.export_rows(entries, start_number_offset=request.start_number_offset)
    except StartlistError as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return 1

    for warning in plan.warnings:
        for occurrence in warning.occurrences:
            print(
                f"WARNING: {warning.class_id}: {occurrence.previous_player_id} -> "
                f"{occurrence.next_player_id} share {', '.join(occurrence.clubs)}",
                file=sys.stderr,
            )

    text = startlist_to_csv(rows, header=CSV_HEADER_JA if args.japanese_header else CSV_HEADER)
    if args.output:
        args.output.write_text(text, encoding="utf-8", newline="")
        print(f"Wrote {len(rows)} rows to {args.output}")
    else:
        sys.stdout.write(text)

    if args.snapshot:
        args.snapshot.write_text(json.dumps(plan.snapshot(args.status), ensure_ascii=False, indent=2), encoding="utf-8")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
