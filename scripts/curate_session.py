#!/usr/bin/env python3
"""CLI script to curate one recorded session into training examples.

Usage:
    python scripts/curate_session.py session.json
    python scripts/curate_session.py session.json --output examples.jsonl --monotonic

The input file holds ``{"sessionId", "config", "interactions"}`` as exported
from the sessions table. The pipeline runs with an in-memory analysis cache
and no external analysis provider.
"""

import argparse
import asyncio
import json
import os
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from curator.config import CacheBackend, get_settings  # noqa: E402
from curator.pipeline.curation import CurationPipeline  # noqa: E402
from curator.recording.models import RecordedSession  # noqa: E402
from curator.utils.logging import configure_logging  # noqa: E402


async def curate(path: Path, output: Path | None, monotonic: bool) -> int:
    base = get_settings()
    settings = base.model_copy(
        update={
            "cache_backend": CacheBackend.MEMORY,
            "monotonic_task_progress": monotonic or base.monotonic_task_progress,
        }
    )
    raw = json.loads(path.read_text(encoding="utf-8"))
    session = RecordedSession.from_dict(raw)

    pipeline = CurationPipeline(settings=settings)
    try:
        result = await pipeline.curate(session)
    finally:
        await pipeline.cache.close()
    assessment = result.assessment

    print("\n" + "=" * 60)
    print(f"SESSION {session.session_id}")
    print("=" * 60)
    print(f"\n  Events:        {len(session.events)}")
    print(f"  Final action:  {assessment.final_action.value}")
    print(f"  Reason:        {assessment.action_reason}")
    print(f"  Eligible:      {assessment.training_eligible}")
    print(f"  Exportable:    {len(result.exportable_examples)}/{len(result.examples)}")
    print("\n  Scores:")
    for category, score in sorted(assessment.category_scores.items()):
        print(f"    {category:<20} {score:6.2f}")
    journey = result.journey_summary
    if journey:
        print("\n  Journey:")
        print(f"    Pages:       {' -> '.join(journey['pagesVisited']) or '-'}")
        print(f"    Intents:     {', '.join(f'{k}={v}' for k, v in journey['intents'].items()) or '-'}")
        print(f"    Decisions:   {journey['decisionPoints']}")
        print(f"    Conversion:  {journey['conversionProbability']:.2f}")
    if assessment.recommendations:
        print("\n  Recommendations:")
        for rec in assessment.recommendations:
            print(f"    [{rec.priority}] {rec.message}")
    print("\n" + "=" * 60)

    if output is not None:
        output.write_text(result.to_jsonl(), encoding="utf-8")
        print(f"\nWrote {len(result.exportable_examples)} examples to {output}")

    return 0 if assessment.training_eligible else 2


def main():
    parser = argparse.ArgumentParser(description="Curate a recorded session into training examples")
    parser.add_argument("session", type=Path, help="Path to the session JSON file")
    parser.add_argument("--output", "-o", type=Path, help="Write exportable examples as JSONL")
    parser.add_argument(
        "--monotonic",
        action="store_true",
        help="Never let the inferred task index move backwards",
    )
    parser.add_argument("--log-level", default=None, help="Override LOG_LEVEL")
    args = parser.parse_args()

    settings = get_settings()
    configure_logging(level=args.log_level or settings.log_level, json_format=settings.log_json)

    if not args.session.exists():
        print(f"Session file not found: {args.session}")
        sys.exit(1)

    sys.exit(asyncio.run(curate(args.session, args.output, args.monotonic)))


if __name__ == "__main__":
    main()
