"""CLI entrypoint."""
from __future__ import annotations

import argparse
import logging
import os
import sys
from pathlib import Path
from typing import List, Optional, Sequence

from dotenv import load_dotenv

from reddit_to_gmap import config
from reddit_to_gmap.pipeline import STAGE_CSV, STAGES, run


def _repo_root() -> Path:
    return Path(__file__).resolve().parent


def load_env(path: str = ".env", root_dir: Optional[Path] = None) -> None:
    """Optionally load a repo-root .env file without overriding real env vars."""
    root = Path(root_dir) if root_dir else _repo_root()
    env_path = (root / path).resolve()
    if not env_path.exists():
        return
    load_dotenv(dotenv_path=env_path, override=False)


def _env_len(name: str) -> int:
    return len((os.environ.get(name) or "").strip())


def _split_csv(value: str) -> List[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Generate a Google Maps import CSV of restaurants from top subreddit posts"
    )
    parser.add_argument("--preflight", action="store_true", help="Check credentials and exit")
    parser.add_argument("-s", "--subreddit", type=str, default=None, help="Subreddit to fetch posts from (required)")
    parser.add_argument("-n", "--num-posts", type=int, default=10, help="Number of posts to fetch")
    parser.add_argument(
        "-t",
        "--time-range",
        choices=list(config.REDDIT_TIME_RANGES),
        default="month",
        help="Time range for top posts (default: month)",
    )
    parser.add_argument(
        "-l",
        "--maps-query-hint",
        type=str,
        default="",
        help="Location hint for Google Maps queries (e.g. 'NYC', 'San Francisco')",
    )
    parser.add_argument(
        "--no-cache",
        dest="use_cache",
        action="store_false",
        help="Ignore cached stage snapshots and fetch fresh data",
    )
    parser.add_argument(
        "-o",
        "--num-output",
        type=int,
        default=0,
        help="Maximum number of rows to write to the CSV (0 means no limit)",
    )
    parser.add_argument(
        "--stage",
        choices=list(STAGES),
        default=STAGE_CSV,
        help="Last stage to run: posts, restaurants, full-restaurants or csv (default: csv)",
    )
    parser.add_argument(
        "--required-fields",
        type=str,
        default=",".join(config.DEFAULT_REQUIRED_PLACE_FIELDS),
        help="Comma-separated place fields a match must have (default: user_rating_count)",
    )
    parser.add_argument("--cache-dir", type=str, default=config.CACHE_DIR)
    parser.add_argument("--out", type=str, default=config.OUTPUT_DIR)
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    args = parser.parse_args(argv)
    if not args.preflight and not args.subreddit:
        parser.error("the following arguments are required: -s/--subreddit")
    return args


def run_preflight() -> int:
    ok = True
    print("Preflight (redacted):")
    for name in config.REQUIRED_ENV_VARS:
        length = _env_len(name)
        status = "OK" if length else "MISSING"
        print(f"- {name}: {status} (length {length})")
        ok = ok and bool(length)
    print("Preflight: PASS" if ok else "Preflight: FAIL")
    return 0 if ok else 1


def main(argv: Optional[Sequence[str]] = None) -> int:
    load_env()
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )

    if args.preflight:
        return run_preflight()

    try:
        settings = config.Settings.from_env()
        run_config = config.RunConfig(
            subreddit=args.subreddit,
            num_posts=args.num_posts,
            time_range=args.time_range,
            maps_query_hint=args.maps_query_hint,
            use_cache=args.use_cache,
            num_output=args.num_output,
            cache_dir=args.cache_dir,
            output_dir=args.out,
            required_place_fields=tuple(_split_csv(args.required_fields)),
        )
        result = run(run_config, settings=settings, stage=args.stage)
    except Exception as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    if result.csv_path:
        print(f"Done. Results written to {result.csv_path}")
    else:
        print(f"Done. Stage {result.stage} cached under {args.cache_dir}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
