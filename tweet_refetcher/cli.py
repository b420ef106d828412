"""Command-line interface for the Tweet Refetcher."""

import asyncio
import logging
import logging.config
import sys
from pathlib import Path
from typing import Optional

import typer
from typing_extensions import Annotated

from tweet_refetcher.collector.rate_limiter import RateLimiter
from tweet_refetcher.collector.refetcher import Refetcher
from tweet_refetcher.config import Config
from tweet_refetcher.errors import ConfigurationError, CredentialsError, InputFileError
from tweet_refetcher.models.mapping import twitter_timestamp
from tweet_refetcher.models.tweet import RefetchSummary
from tweet_refetcher.monitoring.metrics import PrometheusExporter
from tweet_refetcher.storage.jsonl_sink import JsonlSink
from tweet_refetcher.twitter_client import TwitterClient

PROGRAM_NAME = "tweet-refetcher"

app = typer.Typer(
    name=PROGRAM_NAME,
    help="Refetch previously collected tweets and append fresh, timestamped copies",
    add_completion=False,
)

logger = logging.getLogger(__name__)


def setup_logging(log_level: str = "INFO") -> None:
    """
    Set up logging configuration.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """
    log_dir = Path("logs")
    log_dir.mkdir(exist_ok=True)

    log_config = {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "standard": {
                "format": "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
            },
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "level": log_level,
                "formatter": "standard",
                "stream": "ext://sys.stderr",
            },
            "file": {
                "class": "logging.handlers.RotatingFileHandler",
                "level": log_level,
                "formatter": "standard",
                "filename": "logs/refetcher.log",
                "maxBytes": 10485760,  # 10 MB
                "backupCount": 5,
                "encoding": "utf8",
            },
        },
        "loggers": {
            "": {
                "handlers": ["console", "file"],
                "level": log_level,
                "propagate": True
            },
            "asyncio": {
                "level": "WARNING",
            },
            "oauthlib": {
                "level": "WARNING",
            },
        }
    }

    logging.config.dictConfig(log_config)


def report_configuration(infile: str, outfile: str, debug: bool) -> None:
    """Print the run settings before anything else happens."""
    typer.echo("Refetching tweets\n---")
    typer.echo(f"Seed tweets are in {infile}")
    typer.echo(f"Refetched tweets will be added to {outfile}")
    typer.echo(f"Debug mode: {'ON' if debug else 'OFF'}\n---")
    typer.echo(f"\nStarting at {twitter_timestamp()}")


def load_config(
    credentials: str,
    proxy: Optional[str],
    config_file: Optional[str],
    debug: bool,
) -> Config:
    """
    Load and validate configuration, prompting for a proxy password if one is missing.

    Exits with status 1 if the configuration cannot be loaded or is invalid.
    """
    try:
        config = Config.from_files(credentials, proxy_path=proxy, config_path=config_file)
    except CredentialsError as e:
        logger.critical(f"Failed to load credentials: {e}")
        sys.exit(1)
    except ConfigurationError as e:
        logger.error(f"Configuration error: {e}")
        logger.critical("Invalid configuration, aborting")
        sys.exit(1)

    config.debug = debug

    if config.proxy.needs_password:
        config.proxy.password = typer.prompt("Please type in your proxy password", hide_input=True)

    validation_errors = config.validate()
    if validation_errors:
        for error in validation_errors:
            logger.error(f"Configuration error: {error}")
        logger.critical("Invalid configuration, aborting")
        sys.exit(1)

    return config


async def run_refetch(
    config: Config,
    infile: str,
    outfile: str,
    verbose: bool = False,
) -> RefetchSummary:
    """
    Refetch the seed tweets in infile and append them to outfile.

    Args:
        config: Validated configuration
        infile: File of seed tweets
        outfile: File the refetched tweets are appended to
        verbose: Whether to show progress

    Returns:
        Summary of the run
    """
    prometheus_exporter = None
    if config.monitoring.enable_prometheus:
        prometheus_exporter = PrometheusExporter(port=config.monitoring.prometheus_port)
        prometheus_exporter.start_server()

    client = TwitterClient(config)
    await client.initialize()

    try:
        refetcher = Refetcher(
            client,
            RateLimiter(config.rate_limit),
            JsonlSink(outfile),
            batch_size=config.batch_size,
            prometheus_exporter=prometheus_exporter,
            show_progress=verbose,
        )
        return await refetcher.run(infile)
    finally:
        await client.close()


def _help_callback(ctx: typer.Context, value: bool) -> None:
    if value and not ctx.resilient_parsing:
        typer.echo(ctx.get_help())
        raise typer.Exit(code=1)


@app.command(context_settings={"help_option_names": []})
def refetch(
    infile: Annotated[str, typer.Option("--seed-tweets", "-i", help="File of seed tweets to update")] = "./tweets.json",
    outfile: Annotated[str, typer.Option("--outfile", "-o", help="File to update with refetched tweets")] = "./updated-tweets.json",
    credentials: Annotated[str, typer.Option("--credentials", "-c", help="Properties file with Twitter OAuth credentials")] = "./twitter.properties",
    proxy: Annotated[str, typer.Option("--proxy", "-p", help="Properties file with HTTP proxy settings (optional)")] = "./proxy.properties",
    config_file: Annotated[str, typer.Option("--config", help="YAML file with refetch settings (optional)")] = "config.yaml",
    verbose: Annotated[bool, typer.Option("--verbose", "--debug", "-v", help="Debug mode")] = False,
    show_help: Annotated[
        bool,
        typer.Option(
            "--help", "-h", "-?",
            help="Show this message and exit.",
            is_eager=True,
            callback=_help_callback,
        ),
    ] = False,
) -> None:
    """
    Refetch tweets by ID and append them, stamped with collected_at, to the outfile.

    Run it repeatedly over the same seed file to track how retweet and
    favourite counts change over time.
    """
    log_level = "DEBUG" if verbose else "INFO"
    setup_logging(log_level)

    report_configuration(infile, outfile, verbose)
    config = load_config(credentials, proxy, config_file, verbose)

    try:
        asyncio.run(run_refetch(config, infile, outfile, verbose=verbose))
    except InputFileError as e:
        logger.critical(f"Cannot read seed tweets, aborting: {e}")
        sys.exit(1)
    except ValueError as e:
        logger.critical(f"Failed to initialize Twitter client: {e}")
        sys.exit(1)
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        sys.exit(1)
    except Exception as e:
        logger.critical(f"Unhandled exception: {str(e)}", exc_info=True)
        sys.exit(1)

    typer.echo(f"Refetching complete at {twitter_timestamp()}")


def main() -> None:
    """Entry point for the CLI."""
    app(prog_name=PROGRAM_NAME)


if __name__ == "__main__":
    main()
