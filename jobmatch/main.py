"""Main entry point for the Job Match Engine."""

import argparse
import json
import signal
import sys
import threading
import time
from pathlib import Path
from typing import Optional, Tuple

from dotenv import load_dotenv

from jobmatch.config.environment import EnvironmentConfig
from jobmatch.config.exceptions import ConfigurationError
from jobmatch.config.loader import load_config
from jobmatch.config.models import AppConfig
from jobmatch.logging import get_logger
from jobmatch.logging.config import configure_logging
from jobmatch.matching.engine import MatchingEngine
from jobmatch.persistence.database import close_database
from jobmatch.pipeline import BatchMatchRunner, BatchRunResult
from jobmatch.pool import PoolLoadError, load_pool, load_profiles
from jobmatch.scheduler import SchedulerService

logger = get_logger(__name__, component="cli")


def load_runtime_config(
    config_path: Optional[Path], log_level_override: Optional[str]
) -> Tuple[AppConfig, EnvironmentConfig]:
    """
    Load configuration and resolve the effective log level.

    Log level priority: CLI, then LOG_LEVEL, then the config file.

    Args:
        config_path: Path to configuration file (None searches the defaults)
        log_level_override: Log level from CLI

    Returns:
        Tuple of (AppConfig, EnvironmentConfig)

    Raises:
        ConfigurationError: If configuration is invalid
    """
    app_config, env_config = load_config(config_path)

    if log_level_override:
        env_config.log_level = log_level_override
    elif not env_config.log_level:
        env_config.log_level = app_config.logging.level or "INFO"
    env_config.log_level = env_config.log_level.upper()

    return app_config, env_config


def write_report(result: BatchRunResult, output: Optional[Path]) -> None:
    """Write the JSON run report to a file, or to stdout when no path is given."""
    report = json.dumps(result.to_dict(), indent=2, ensure_ascii=False)
    if output is None:
        print(report)
        return

    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text(report + "\n", encoding="utf-8")
    logger.info(f"Report written to {output}", extra={"event": "report.written", "path": str(output)})


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Job Match Engine - match user profiles against a candidate job pool"
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to configuration file (default: config.yaml or config/config.yaml)",
    )
    parser.add_argument("--users", type=Path, required=True, help="YAML/JSON file of user profiles")
    parser.add_argument("--pool", type=Path, required=True, help="YAML/JSON file of job postings")
    parser.add_argument(
        "--output",
        type=Path,
        default=None,
        help="Where to write the JSON report (default: stdout)",
    )
    parser.add_argument(
        "--manual-run",
        action="store_true",
        help="Run a single batch immediately and exit",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Log level (overrides config and environment)",
    )
    return parser


def main(argv: Optional[list] = None) -> int:
    """
    Main entry point for the Job Match Engine.

    Returns:
        Exit code (0 for success, 1 for configuration errors or failed users).
    """
    load_dotenv()
    start_time = time.time()
    args = build_parser().parse_args(argv)
    engine: Optional[MatchingEngine] = None

    try:
        app_config, env_config = load_runtime_config(args.config, args.log_level)
        configure_logging(
            level=env_config.log_level,
            format_type=app_config.logging.format,
            environment=env_config.environment,
        )

        logger.info(
            "Job Match Engine starting",
            extra={
                "event": "service.starting",
                "config_path": str(args.config) if args.config else None,
                "log_level": env_config.log_level,
                "manual_run": args.manual_run,
            },
        )
        logger.info(
            "Configuration loaded",
            extra={
                "event": "config.loaded",
                "tier_order": ",".join(app_config.get_tier_order()),
                "cache_backend": app_config.cache.backend,
                "ai_credentials_present": env_config.ai_credentials_present,
            },
        )

        engine = MatchingEngine.build(app_config, env_config)
        runner = BatchMatchRunner(engine, max_concurrent_users=app_config.batch.max_concurrent_users)

        if args.manual_run:
            pool = load_pool(args.pool)
            users = load_profiles(args.users)
            result = runner.run_once(users, pool)
            write_report(result, args.output)

            logger.info(
                f"Manual run completed: {result.total_users} users, "
                f"{result.total_results} results, {result.failed_users} failed",
                extra={
                    "event": "service.manual_run.completed",
                    "duration_seconds": result.total_duration_seconds,
                    "had_errors": result.had_errors,
                    "method_counts": result.method_counts,
                },
            )
            return 1 if result.had_errors else 0

        shutdown_event = threading.Event()

        def scheduled_run() -> Optional[BatchRunResult]:
            # Files are re-read every run so collector updates are picked up
            try:
                pool = load_pool(args.pool)
                users = load_profiles(args.users)
            except PoolLoadError as e:
                logger.error(
                    f"Skipping batch run, input files invalid: {e}",
                    extra={"event": "batch.run.input_invalid", "path": e.path},
                )
                return None
            result = runner.run_once(users, pool)
            if not result.skipped:
                write_report(result, args.output)
            return result

        scheduler_service = SchedulerService(
            run_callable=scheduled_run,
            interval_seconds=app_config.batch.run_interval_seconds,
            shutdown_event=shutdown_event,
        )

        def signal_handler(signum, frame):
            logger.info(
                f"Received signal {signum}, shutting down",
                extra={"event": "service.signal_received", "signal": signum},
            )
            scheduler_service.shutdown(wait=False)

        signal.signal(signal.SIGINT, signal_handler)
        signal.signal(signal.SIGTERM, signal_handler)

        scheduler_service.start()
        logger.info("Scheduler started. Press Ctrl+C to stop", extra={"event": "service.daemon_mode.started"})

        try:
            shutdown_event.wait()
        except KeyboardInterrupt:
            logger.info("Keyboard interrupt received, shutting down", extra={"event": "service.keyboard_interrupt"})
            scheduler_service.shutdown(wait=False)
        return 0

    except ConfigurationError as e:
        print(f"Configuration Error: {e}", file=sys.stderr)
        logger.error(
            f"Configuration error: {e}",
            extra={"event": "config.error", "error_type": "ConfigurationError"},
        )
        return 1
    except PoolLoadError as e:
        print(f"Input Error: {e}", file=sys.stderr)
        logger.error(f"Input error: {e}", extra={"event": "input.error", "path": e.path})
        return 1
    except KeyboardInterrupt:
        print("\nShutdown requested by user", file=sys.stderr)
        return 0
    except Exception as e:
        print(f"Fatal error: {e}", file=sys.stderr)
        logger.critical(
            "Fatal error during startup",
            extra={"event": "service.startup.failed", "error_type": type(e).__name__, "error": str(e)},
            exc_info=True,
        )
        return 1
    finally:
        if engine is not None:
            engine.shutdown()
        close_database()
        logger.info(
            "Job Match Engine stopped",
            extra={"event": "service.stopping", "uptime_seconds": round(time.time() - start_time, 2)},
        )


if __name__ == "__main__":
    sys.exit(main())
