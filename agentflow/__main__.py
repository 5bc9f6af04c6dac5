"""Main entry point for the AgentFlow trading agent."""
import argparse
import asyncio
import logging
import signal
import sys

from agentflow.core.config import load_settings
from agentflow.core.errors import ConfigurationError
from agentflow.core.orchestrator import AgentRunner

logger = logging.getLogger(__name__)


def parse_args(args: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments.

    Args:
        args: Command line arguments (defaults to sys.argv[1:])

    Returns:
        Parsed arguments namespace
    """
    parser = argparse.ArgumentParser(
        prog="python -m agentflow",
        description="AgentFlow - Autonomous multi-chain trading agent",
    )

    parser.add_argument(
        "-c", "--config",
        default="config/default.yaml",
        help="Path to configuration file (default: config/default.yaml)",
    )

    parser.add_argument(
        "-l", "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Logging level (default: INFO)",
    )

    parser.add_argument(
        "--once",
        action="store_true",
        help="Run a single evaluation cycle and exit",
    )

    return parser.parse_args(args)


def setup_logging(level: str) -> None:
    """Configure logging for the application."""
    log_format = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    logging.basicConfig(
        level=getattr(logging, level),
        format=log_format,
        handlers=[
            logging.StreamHandler(sys.stdout),
        ],
    )

    # Reduce noise from external libraries
    logging.getLogger("aiohttp").setLevel(logging.WARNING)
    logging.getLogger("urllib3").setLevel(logging.WARNING)


async def run_agent(runner: AgentRunner, once: bool) -> None:
    """Run the agent, stopping gracefully on SIGINT/SIGTERM."""
    if once:
        results = await runner.run_cycle()
        succeeded = sum(1 for r in results if r.success)
        logger.info(f"Cycle complete: {succeeded}/{len(results)} execution(s) succeeded")
        return

    loop = asyncio.get_running_loop()
    for signum in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(signum, runner.stop)

    try:
        await runner.run()
    finally:
        for signum in (signal.SIGINT, signal.SIGTERM):
            loop.remove_signal_handler(signum)


def main(args: list[str] | None = None) -> int:
    """Main entry point.

    Args:
        args: Command line arguments (defaults to sys.argv[1:])

    Returns:
        Exit code (0 for success, 1 for error)
    """
    parsed_args = parse_args(args)

    setup_logging(parsed_args.log_level)

    logger.info("AgentFlow starting...")
    logger.info(f"Config: {parsed_args.config}")

    runner = None

    try:
        settings = load_settings(parsed_args.config)
        runner = AgentRunner(settings)
        asyncio.run(run_agent(runner, parsed_args.once))
        return 0

    except ConfigurationError as e:
        logger.error(f"Configuration error: {e}")
        return 1

    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        if runner:
            runner.stop()
        return 0

    except Exception as e:
        logger.exception(f"Unexpected error: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
