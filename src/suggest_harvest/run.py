"""
CLI runner for suggest-harvest.

Usage:
    python -m suggest_harvest.run [OPTIONS]

    # Harvest with the saved options
    python -m suggest_harvest.run

    # Harvest a new seed with English suffixes, and export to CSV
    python -m suggest_harvest.run --seed "gift" --generic-suffix --csv out.csv

    # Show the query queue without calling any provider
    python -m suggest_harvest.run --seed "gift {} ideas" --dry-run
"""

import argparse
import asyncio
import logging
import signal
import sys
from pathlib import Path

import httpx
import yaml

from .analysis import filter_records, word_clusters
from .config import HarvestConfig, StrategiesConfig
from .errors import ConfigurationError, SeedValidationError
from .export import to_csv, to_text
from .harvest import Harvester
from .labeling import KeywordAnalyzer, label_intents
from .models import KeywordRecord, OptionsStore, RunStatus
from .providers import ProviderId

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("suggest-harvest")

STRATEGY_FLAGS = {
    "script_alphabet": "Persian alphabet, one letter",
    "script_double": "Persian alphabet, two letters (expensive)",
    "generic_prefix": "English A-Z before the seed",
    "generic_suffix": "English A-Z after the seed",
    "questions": "Question templates (how to, what is, ...)",
    "middle_gap": "Fill the gaps between words",
    "deep": "Deep follow-up (accepted, currently no effect)",
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="suggest-harvest: Autocomplete keyword harvester",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    # Harvest with the saved options
    python -m suggest_harvest.run

    # New seed, Google and YouTube, English suffixes
    python -m suggest_harvest.run --seed "gift" --provider google \\
        --provider youtube --generic-suffix

    # Top 10 words, then only the keywords found by one query
    python -m suggest_harvest.run --clusters 10 --parent "gift a"

    # Label intents with Gemini and export everything
    python -m suggest_harvest.run --label --csv keywords.csv
        """,
    )

    parser.add_argument(
        "--config",
        type=Path,
        default=Path("suggest_harvest.yaml"),
        help="Path to config file (default: suggest_harvest.yaml)",
    )
    parser.add_argument(
        "--db",
        type=Path,
        help="Override options database path from config",
    )
    parser.add_argument("--seed", type=str, help="Seed phrase; use {} or _ as a placeholder")
    parser.add_argument("--locale", type=str, help="Region code passed to providers (e.g. IR, US)")
    parser.add_argument(
        "--provider",
        action="append",
        choices=[p.value for p in ProviderId],
        help="Provider to query (repeatable; replaces the saved list)",
    )
    for flag, help_text in STRATEGY_FLAGS.items():
        parser.add_argument(
            f"--{flag.replace('_', '-')}",
            dest=flag,
            action=argparse.BooleanOptionalAction,
            default=None,
            help=help_text,
        )
    parser.add_argument("--parent", type=str, help="Only output keywords found by this query")
    parser.add_argument(
        "--cluster", type=str, help="Only output keywords containing this cluster word"
    )
    parser.add_argument(
        "--filter", dest="text", type=str, help="Only output keywords containing this text"
    )
    parser.add_argument(
        "--clusters",
        type=int,
        metavar="N",
        help="Log the N most frequent words across the harvested keywords",
    )
    parser.add_argument("--csv", type=Path, help="Write results as CSV to this path")
    parser.add_argument(
        "--plain",
        action="store_true",
        help="Print one keyword per line (clipboard format)",
    )
    parser.add_argument(
        "--label",
        action="store_true",
        help="Label search intent with the configured LLM after harvesting",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Show the query queue without calling any provider",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable verbose logging",
    )
    return parser


def apply_arguments(harvester: Harvester, args: argparse.Namespace) -> None:
    """Save options given on the command line."""
    changes: dict = {}
    if args.seed is not None:
        changes["seed"] = args.seed
    if args.locale is not None:
        changes["locale"] = args.locale
    if args.provider:
        changes["providers"] = args.provider
    for flag in StrategiesConfig().to_dict():
        value = getattr(args, flag, None)
        if value is not None:
            changes[flag] = value
    if changes:
        harvester.update_options(**changes)


def print_records(records: list[KeywordRecord]) -> None:
    for record in records:
        intent = record.metadata.get("intent")
        suffix = f"\t{intent}" if intent else ""
        print(f"{record.keyword}\t{record.tag}\t{','.join(record.sources)}{suffix}")


async def harvest(harvester: Harvester) -> RunStatus:
    """Run one harvest, cancelling cleanly on SIGINT."""
    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, harvester.stop)
    except (NotImplementedError, RuntimeError):
        pass  # Not supported on this platform; Ctrl-C raises KeyboardInterrupt

    def report(records: list[KeywordRecord]) -> None:
        logger.info(f"+{len(records)} keyword(s), progress {harvester.progress:.0f}%")

    try:
        status = await harvester.start(on_batch_accepted=report)
    finally:
        try:
            loop.remove_signal_handler(signal.SIGINT)
        except (NotImplementedError, RuntimeError):
            pass

    return status


def main() -> int:
    """Main entry point."""
    parser = build_parser()
    args = parser.parse_args()

    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    try:
        config = HarvestConfig.from_yaml(args.config)
    except (ValueError, yaml.YAMLError) as e:
        logger.error(f"Invalid config {args.config}: {e}")
        return 1
    if args.db:
        config.db_path = args.db

    logger.info(f"Config loaded from {args.config}")
    logger.info(f"Options database: {config.db_path}")

    harvester = Harvester(config, OptionsStore(config.db_path))
    apply_arguments(harvester, args)

    options = harvester.options
    if not options.seed.strip():
        logger.error("No seed given; pass --seed or save one first")
        return 1

    enabled = [name for name, on in options.strategies.to_dict().items() if on]
    logger.info(
        f"Seed: {options.seed!r}, locale: {options.locale}, "
        f"providers: {','.join(options.providers)}, "
        f"strategies: {','.join(enabled) or 'none'}"
    )

    if args.dry_run:
        queue = harvester.build_queue()
        logger.info(f"Dry run: {len(queue)} queries")
        for item in queue:
            print(f"{item.tag}\t{item.query}")
        return 0

    try:
        status = asyncio.run(harvest(harvester))
    except SeedValidationError as e:
        logger.error(str(e))
        return 1
    except KeyboardInterrupt:
        logger.info("Stopped by user")
        return 130

    records = harvester.records
    logger.info(f"Run {status.value}: {len(records)} keyword(s)")

    if args.clusters:
        for word, count in word_clusters(records, limit=args.clusters):
            logger.info(f"Cluster {word!r}: {count} keyword(s)")

    if args.parent or args.cluster or args.text:
        records = filter_records(
            records, parent=args.parent, cluster=args.cluster, text=args.text
        )
        logger.info(f"{len(records)} keyword(s) match the filters")

    if args.label and records:
        analyzer = KeywordAnalyzer(config.llm)
        targets = records[: config.llm.max_keywords]
        try:
            labeled = asyncio.run(label_intents(analyzer, targets))
            logger.info(f"Labeled {labeled} keyword(s) with search intent")
        except ConfigurationError as e:
            logger.error(f"AI analysis unavailable: {e}")
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"AI analysis failed: {e}")

    if args.csv:
        args.csv.write_text(to_csv(records) + "\n", encoding="utf-8")
        logger.info(f"Wrote {len(records)} row(s) to {args.csv}")
    elif args.plain:
        print(to_text(records))
    else:
        print_records(records)

    if status == RunStatus.CANCELLED:
        return 130
    return 0


if __name__ == "__main__":
    sys.exit(main())
