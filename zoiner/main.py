"""Main entry point for the Zoiner bot."""

import argparse
import asyncio
import logging
import sys

from .bot import Bot
from .cast_gate import InMemoryCastGate
from .config import Config, load_config
from .decision_engine import DecisionEngine
from .llm_handler import create_advisory_model
from .minting import MintingOrchestrator
from .neynar_client import NeynarClient
from .pinata_client import PinataClient
from .services import (
    ConversationService,
    ImageAnalysisService,
    TokenCreationService,
    close_db_service,
    init_db_service,
)
from .services.webhook_handler import WebhookHandler
from .webhook_server import create_webhook_app
from .zora_client import ZoraClient


def setup_logging(verbose: bool = False) -> None:
    """Configure logging for the application."""
    level = logging.DEBUG if verbose else logging.INFO

    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        handlers=[
            logging.StreamHandler(sys.stdout),
        ],
    )

    # Reduce noise from libraries
    for name in ("httpx", "httpcore", "urllib3", "sqlalchemy", "web3"):
        logging.getLogger(name).setLevel(logging.WARNING)


def build_handler(config: Config) -> WebhookHandler:
    """Wire the pipeline's collaborators from configuration."""
    timeout = config.bot.service_timeout

    neynar = NeynarClient(config.farcaster, timeout=timeout)
    storage = PinataClient(config.pinata, timeout=timeout)
    issuer = ZoraClient(config.zora, storage)
    conversations = ConversationService(retention=config.bot.conversation_retention)

    gate = InMemoryCastGate(
        cooldown_seconds=config.bot.cooldown_seconds,
        eviction_seconds=config.bot.cooldown_eviction_seconds,
    )
    engine = DecisionEngine(
        neynar=neynar,
        analyses=ImageAnalysisService(),
        conversations=conversations,
        advisory=create_advisory_model(config.llm),
        timeout=timeout,
    )
    orchestrator = MintingOrchestrator(
        neynar=neynar,
        storage=storage,
        issuer=issuer,
        ledger=TokenCreationService(),
        platform_referrer=config.zora.platform_referrer,
        dry_run=config.bot.dry_run,
        public_url=config.server.public_url,
    )
    bot = Bot(
        neynar=neynar,
        gate=gate,
        engine=engine,
        orchestrator=orchestrator,
        conversations=conversations,
        loop_guard_seconds=config.bot.loop_guard_seconds,
    )
    return WebhookHandler(bot, gate)


async def run_webhook_server(args, logger, config: Config) -> int:
    """Initialize storage and serve webhooks until interrupted."""
    import uvicorn

    try:
        logger.info("Initializing database at %s", config.bot.database_path)
        await init_db_service(config.bot.database_path)

        app = create_webhook_app(config, build_handler(config))

        logger.info(
            "Starting webhook server on %s:%d (bot fid %d, dry run: %s)",
            config.server.host,
            config.server.port,
            config.farcaster.bot_fid,
            config.bot.dry_run,
        )
        uvicorn_config = uvicorn.Config(
            app,
            host=config.server.host,
            port=config.server.port,
            log_level="info" if args.verbose else "warning",
        )
        server = uvicorn.Server(uvicorn_config)
        await server.serve()
        return 0

    except Exception as e:
        logger.exception("Webhook server error: %s", e)
        return 1
    finally:
        await close_db_service()
        logger.info("Database connection closed")


def main() -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Farcaster bot that turns mentions into Zora coins",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s                              # Run with default config.yaml
  %(prog)s -c myconfig.yaml             # Run with custom config
  %(prog)s -v                           # Run with verbose logging
  %(prog)s --dry-run                    # Reply with simulated mints only
  %(prog)s --host 0.0.0.0 --port 9000   # Override the listen address
        """,
    )

    parser.add_argument(
        "-c",
        "--config",
        default="config.yaml",
        help="Path to configuration file (default: config.yaml)",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose/debug logging",
    )
    parser.add_argument("--host", help="Override server.host")
    parser.add_argument("--port", type=int, help="Override server.port")
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Never mint; reply with what would have been created",
    )

    args = parser.parse_args()

    setup_logging(args.verbose)
    logger = logging.getLogger(__name__)

    try:
        logger.info("Loading configuration from %s", args.config)
        config = load_config(args.config)
    except FileNotFoundError as e:
        logger.error(str(e))
        return 1
    except Exception as e:
        logger.exception("Invalid configuration: %s", e)
        return 1

    if args.host:
        config.server.host = args.host
    if args.port:
        config.server.port = args.port
    if args.dry_run:
        config.bot.dry_run = True

    try:
        return asyncio.run(run_webhook_server(args, logger, config))
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 0


if __name__ == "__main__":
    sys.exit(main())
