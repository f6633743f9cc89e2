from __future__ import annotations

import argparse
import dataclasses
import json
import logging
import random
import sys
from typing import List, Optional

from .classifiers.registry import discover_plugins, list_classifiers
from .config import Settings, load_settings
from .errors import FallbackExhausted
from .pipeline import analyze_video
from .scoring.fallback import DEFAULT_STAGES, FallbackSynthesizer
from .storage import ResultSink, create_result_sink


def _build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="deepfake-verdict")
    p.add_argument("--list-classifiers", action="store_true", help="List available frame classifiers")
    p.add_argument("--store", choices=["json", "sqlite"], help="Result store backend")
    p.add_argument("--store-path", help="Result store file")
    p.add_argument("--log-level", help="Logging level (DEBUG, INFO, WARNING, ...)")
    sub = p.add_subparsers(dest="cmd", required=False)

    analyze = sub.add_parser("analyze", help="Analyze a video and print the result")
    analyze.add_argument("--video", required=True, help="Path to input video")
    analyze.add_argument("--classifier", help="Frame classifier to use")
    analyze.add_argument("--num-frames", type=int)
    analyze.add_argument("--timeout", type=float, help="Frame extraction timeout in seconds")
    analyze.add_argument("--seed", type=int, help="Seed for the fallback random source")
    analyze.add_argument("--owner", help="Owner id stored with the result")
    analyze.add_argument("--no-save", action="store_true", help="Do not store the result")
    analyze.add_argument("--progress", action="store_true", help="Print progress to stderr")

    results = sub.add_parser("results", help="Inspect stored results")
    rsub = results.add_subparsers(dest="results_cmd", required=True)
    r_list = rsub.add_parser("list", help="List stored results, newest first")
    r_list.add_argument("--owner")
    r_show = rsub.add_parser("show", help="Show one stored result")
    r_show.add_argument("result_id")
    r_stats = rsub.add_parser("stats", help="Counts per verdict and mean confidence")
    r_stats.add_argument("--owner")
    r_clear = rsub.add_parser("clear", help="Delete stored results")
    r_clear.add_argument("--owner", help="Only delete this owner's results")

    return p


def _settings_from_args(args: argparse.Namespace) -> Settings:
    settings = load_settings()
    overrides = {}
    if args.store:
        overrides["store_backend"] = args.store
        if not args.store_path and args.store != settings.store_backend:
            suffix = "db" if args.store == "sqlite" else "json"
            overrides["store_path"] = f"~/.deepfake_verdict/results.{suffix}"
    if args.store_path:
        overrides["store_path"] = args.store_path
    if args.log_level:
        overrides["log_level"] = args.log_level.upper()
    if getattr(args, "classifier", None):
        overrides["classifier"] = args.classifier
    num_frames = getattr(args, "num_frames", None)
    if num_frames is not None:
        if num_frames <= 0:
            raise ValueError(f"--num-frames must be positive (got {num_frames}).")
        overrides["num_frames"] = num_frames
    timeout = getattr(args, "timeout", None)
    if timeout is not None:
        if timeout <= 0:
            raise ValueError(f"--timeout must be positive (got {timeout}).")
        overrides["frame_timeout"] = timeout
    return dataclasses.replace(settings, **overrides)


def _print_json(data) -> None:
    print(json.dumps(data, indent=2))


def _run_analyze(args: argparse.Namespace, settings: Settings, sink: Optional[ResultSink]) -> None:
    rng = random.Random(args.seed) if args.seed is not None else random.Random()
    stages = DEFAULT_STAGES if settings.fallback_delays else tuple((p, 0.0) for p, _ in DEFAULT_STAGES)

    def on_progress(value: int) -> None:
        print(f"progress: {value}%", file=sys.stderr)

    result = analyze_video(
        args.video,
        classifier_name=settings.classifier,
        classifier_options=settings.classifier_options(),
        on_progress=on_progress if args.progress else None,
        num_frames=settings.num_frames,
        frame_timeout=settings.frame_timeout,
        rng=rng,
        fallback=FallbackSynthesizer(rng, stages=stages),
    )
    if sink is not None:
        sink.save(result, owner_id=args.owner)
    _print_json(result.to_dict())


def _run_results(args: argparse.Namespace, sink: ResultSink) -> None:
    if args.results_cmd == "list":
        _print_json([r.to_dict() for r in sink.list(args.owner)])
    elif args.results_cmd == "show":
        result = sink.get(args.result_id)
        if result is None:
            print(f"Error: result '{args.result_id}' not found.", file=sys.stderr)
            sys.exit(1)
        _print_json(result.to_dict())
    elif args.results_cmd == "stats":
        _print_json(sink.stats(args.owner).to_dict())
    elif args.results_cmd == "clear":
        if args.owner:
            removed = sink.delete_by_owner(args.owner)
            print(f"Deleted {removed} result(s) for owner '{args.owner}'.")
        else:
            sink.clear()
            print("Deleted all results.")


def main(argv: Optional[List[str]] = None):
    p = _build_parser()
    args = p.parse_args(argv)

    try:
        settings = _settings_from_args(args)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    discover_plugins()

    if args.list_classifiers:
        print("Available classifiers:")
        for name in list_classifiers():
            print(f"  - {name}")
        return

    if not args.cmd:
        p.print_help()
        sys.exit(0)

    try:
        if args.cmd == "analyze":
            sink = None if args.no_save else create_result_sink(settings.store_backend, settings.store_path)
            _run_analyze(args, settings, sink)
        elif args.cmd == "results":
            _run_results(args, create_result_sink(settings.store_backend, settings.store_path))
    except FallbackExhausted as e:
        print(f"Error: analysis failed, retry with different input ({e})", file=sys.stderr)
        sys.exit(2)
    except (ValueError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
