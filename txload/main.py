"""Main entry point for the transaction load test"""
import asyncio
import logging
import sys

from pydantic import ValidationError

from txload import config
from txload.exceptions import ConfigurationError
from txload.runner import EXIT_CONFIG_ERROR, run_load_test
from txload.scenarios.transactions import default_run_config

# Configure logging
logging.basicConfig(
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    level=getattr(logging, config.LOG_LEVEL.upper(), logging.INFO)
)

logger = logging.getLogger(__name__)


async def main() -> int:
    """Run the load test and return the process exit code"""
    try:
        # Validate configuration
        logger.info("Validating configuration...")
        config.validate_config()
        run_config = default_run_config()
        base_url = config.get_base_url()

        logger.info(f"Testing against {base_url}")
        report = await run_load_test(
            run_config,
            base_url,
            timeout=config.get_request_timeout(),
            metrics_port=config.get_metrics_port(),
            summary_path=config.SUMMARY_EXPORT_PATH,
        )
        return report.exit_code

    except (ConfigurationError, ValidationError) as e:
        logger.error(f"Invalid configuration, run not started: {e}")
        return EXIT_CONFIG_ERROR


def run() -> None:
    """Console script entry point"""
    try:
        exit_code = asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("Interrupted, shutting down...")
        exit_code = 130
    sys.exit(exit_code)


if __name__ == "__main__":
    run()
