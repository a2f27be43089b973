"""CLI entrypoint for the daily arXiv digest pipeline."""

from __future__ import annotations

import argparse
import dataclasses
import logging
import sys

from blob_store import FileBlobStore
from config import DEFAULT_ENV_FILE, Settings, load_settings, save_settings
from mirror import WebhookMirror
from pipeline import STAGES, RunStatus, run_pipeline
from stage_store import StageStore


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line flags."""
    parser = argparse.ArgumentParser(description="Run the arXiv fetch -> filter -> analyze pipeline")
    parser.add_argument(
        "--mode",
        choices=["run", "history", "configure"],
        default="run",
        help=(
            "'run' (default): execute one pipeline cycle. "
            "'history': list retained daily reports. "
            "'configure': save --api-key/--model/--provider/--mirror-url to the env file."
        ),
    )
    parser.add_argument("--env-file", default=DEFAULT_ENV_FILE, help="Settings file (default: .env)")
    parser.add_argument(
        "--resume-from",
        choices=STAGES,
        default="fetch",
        help="Skip earlier stages and start from today's committed snapshot",
    )
    parser.add_argument(
        "--use-cached-raw",
        action="store_true",
        help="If the fetch returns nothing, continue with today's cached raw snapshot",
    )
    parser.add_argument("--api-key", default=None, help="LLM API key (configure mode)")
    parser.add_argument("--model", default=None, help="LLM model id (configure mode)")
    parser.add_argument("--provider", choices=["openai", "anthropic"], default=None, help="LLM host type (configure mode)")
    parser.add_argument("--mirror-url", default=None, help="Webhook URL for mirroring, '' to disable (configure mode)")
    return parser.parse_args(argv)


def build_store(settings: Settings) -> StageStore:
    mirror = WebhookMirror(settings.mirror_url, timeout=settings.request_timeout) if settings.mirror_url else None
    return StageStore(FileBlobStore(settings.data_dir), mirror=mirror)


def configure(settings: Settings, args: argparse.Namespace) -> Settings:
    """Apply CLI overrides and persist them."""
    changes = {
        name: value
        for name, value in (
            ("api_key", args.api_key),
            ("model", args.model),
            ("provider", args.provider),
            ("mirror_url", args.mirror_url),
        )
        if value is not None
    }
    updated = dataclasses.replace(settings, **changes)
    save_settings(updated, args.env_file)
    logging.info("Settings saved: %s", ", ".join(sorted(changes)) or "no changes")
    return updated


def show_history(store: StageStore) -> None:
    history = store.load_history()
    if not history:
        print("No reports retained.")
        return
    for snapshot in history:
        print(f"{snapshot.date}  {len(snapshot.papers)} papers")


def main(argv: list[str] | None = None) -> int:
    """Initialize config and execute the selected mode."""
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(message)s")
    args = parse_args(argv)
    settings = load_settings(args.env_file)

    if args.mode == "configure":
        configure(settings, args)
        return 0

    store = build_store(settings)
    if args.mode == "history":
        show_history(store)
        return 0

    result = run_pipeline(
        settings,
        store,
        resume_from=args.resume_from,
        use_cached_raw=args.use_cached_raw,
    )
    logging.info("Run finished: status=%s report_papers=%s", result.status, len(result.report))
    return 0 if result.status is RunStatus.COMPLETED else 1


if __name__ == "__main__":
    sys.exit(main())
