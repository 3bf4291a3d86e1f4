#!/usr/bin/env python3

"""
Job Harvester - Main Entry Point
Stealth scraping of job postings into a local job store
"""

import argparse
import json
import logging
import signal
import sys
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

from job_harvester.cancel import CancellationToken
from job_harvester.config_loader import load_config
from job_harvester.errors import ConfigValidationError, StoreError
from job_harvester.harvester import Harvester
from job_harvester.inpage import InPageExtractor
from job_harvester.store import SqliteJobStore


def setup_logging(config) -> None:
    """Configure logging for the application"""
    log_file = config.get_log_file()
    log_file.parent.mkdir(parents=True, exist_ok=True)

    log_level = getattr(logging, config.get_log_level(), logging.INFO)

    logging.basicConfig(
        level=log_level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.FileHandler(log_file),
            logging.StreamHandler()
        ]
    )

    logger = logging.getLogger(__name__)
    logger.info(f"Logging initialized: {log_file}")


def display_config(config, queries: List[str], max_records: int) -> None:
    """Display loaded configuration"""
    print("\n" + "="*60)
    print("🤖 JOB HARVESTER - Configuration Loaded")
    print("="*60)

    print("\n📋 SEARCH QUERIES:")
    for i, query in enumerate(queries, 1):
        print(f"  {i}. {query}")

    print(f"\n📍 Location: {config.get_location() or 'Anywhere'}")
    print(f"📊 Max records: {max_records if max_records > 0 else 'unlimited'}")
    print(f"🌐 Search URL: {config.get_search_url()}")

    print(f"\n⚙️  BROWSER SETTINGS:")
    print(f"  Headless mode: {config.is_headless()}")
    print(f"  Query delay: {config.get_query_delay_min()}s - {config.get_query_delay_max()}s")
    print(f"  Page timeout: {config.get_page_timeout()/1000}s")
    print(f"  Warm-up: {'on' if config.is_warmup_enabled() else 'off'}")

    print(f"\n💾 STORAGE:")
    print(f"  SQLite: {config.get_sqlite_path()}")

    print("\n" + "="*60 + "\n")


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Job Harvester")
    subparsers = parser.add_subparsers(dest="command")

    run_parser = subparsers.add_parser("run", help="Scrape search results into the job store")
    run_parser.add_argument("--config", default="config/settings.yaml", help="Path to config YAML")
    run_parser.add_argument("--max-records", type=int, default=None, help="Stop after N postings")
    run_parser.add_argument(
        "--query",
        action="append",
        dest="queries",
        help="Search query (repeatable); overrides search.queries",
    )
    run_parser.add_argument("--no-warmup", action="store_true", help="Skip the browser warm-up sequence")

    extract_parser = subparsers.add_parser("extract", help="Extract one posting from a saved HTML page")
    extract_parser.add_argument("html_file", help="Saved page HTML")
    extract_parser.add_argument("--url", required=True, help="URL the page was saved from")
    extract_parser.add_argument("--config", default="config/settings.yaml", help="Path to config YAML")

    argv = list(sys.argv[1:] if argv is None else argv)
    # Bare invocation (or options only) means "run"
    if not argv or argv[0] not in ("run", "extract", "-h", "--help"):
        argv = ["run"] + argv
    return parser.parse_args(argv)


def install_interrupt_handler(token: CancellationToken) -> None:
    """First Ctrl+C cancels cooperatively; a second one interrupts immediately."""

    def _handler(signum, frame):
        if token.cancelled:
            raise KeyboardInterrupt
        print("\n⚠️  Interrupt received - finishing current step and saving partial results...")
        token.cancel("interrupted")

    signal.signal(signal.SIGINT, _handler)


def run_command(config, args) -> int:
    logger = logging.getLogger(__name__)
    queries = args.queries or config.get_queries()
    max_records = config.get_max_records() if args.max_records is None else args.max_records
    display_config(config, queries, max_records)

    token = CancellationToken()
    install_interrupt_handler(token)

    try:
        store = SqliteJobStore(config.get_sqlite_path())
    except StoreError as e:
        print(f"❌ Error opening job store: {e}")
        logger.error("Job store unavailable: %s", e)
        return 1

    try:
        harvester = Harvester(config, store, token=token)
        report = harvester.run(
            queries,
            max_records=max_records,
            warmup=False if args.no_warmup else None,
        )
    finally:
        store.close()

    report_path = report.write_json(config.get_report_path())

    print("\n" + "="*60)
    print("✅ HARVEST COMPLETE" if report.ok else "❌ HARVEST ABORTED")
    print("="*60)
    print(f"\n📊 Collected: {report.count('collected')}")
    print(f"💾 Saved: {report.count('saved')}")
    print(f"⏭️  Skipped: {report.count('skipped')}")
    print(f"⚠️  Errors: {report.count('errored')}")
    print(f"🔍 Failed queries: {report.count('queries_failed')}")
    if report.artifacts:
        print(f"🖼️  Artifacts: {len(report.artifacts)} files in {config.get_artifacts_dir()}")
    print(f"📁 Report: {report_path}")
    print("\n" + "="*60 + "\n")

    logger.info("Run report written to %s", report_path)
    return 0 if report.ok else 1


def extract_command(config, args) -> int:
    html_path = Path(args.html_file)
    if not html_path.exists():
        print(f"❌ Error: HTML file not found: {html_path}")
        return 1

    extractor = InPageExtractor(html_path.read_text(encoding="utf-8"), args.url, config)
    if not extractor.supported:
        print(f"❌ Unsupported site: {args.url}")
        return 1

    posting = extractor.extract()
    if posting is None:
        print("⚠️  No job posting found on this page")
        return 1

    print(json.dumps(posting.to_record(), indent=2, default=str))
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """Main execution function"""
    load_dotenv(override=False)
    args = parse_args(argv)

    # Load configuration
    try:
        config = load_config(args.config)
    except FileNotFoundError as e:
        print(f"❌ Error: {e}")
        print("Make sure config/settings.yaml exists!")
        return 1
    except ConfigValidationError as e:
        print(f"❌ Invalid config: {e}")
        return 1
    except Exception as e:
        print(f"❌ Error loading config: {e}")
        return 1

    # Setup logging
    setup_logging(config)

    if args.command == "extract":
        return extract_command(config, args)
    print("\n🚀 Starting Job Harvester...")
    return run_command(config, args)


if __name__ == "__main__":
    sys.exit(main())
