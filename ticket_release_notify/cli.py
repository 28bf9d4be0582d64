"""Command-line interface for the Ticket Release Notifier."""
import argparse
import asyncio
import logging
import sys
from typing import List, Optional

from ticket_release_notify import __version__
from ticket_release_notify.app import create_controller, load_config, validate_config
from ticket_release_notify.errors import ParseError, TicketReleaseError
from ticket_release_notify.models import AppConfig, EventState, ResetGranularity
from ticket_release_notify.store import StateStore

logger = logging.getLogger(__name__)


def parse_args(args: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command line arguments.

    Every option defaults to None so that only flags given explicitly
    override the environment.

    Args:
        args: List of command line arguments. If None, uses sys.argv[1:].

    Returns:
        Parsed arguments.
    """
    parser = argparse.ArgumentParser(
        description="Check the ticket page once and announce sale milestones to the chat channel.",
    )

    # Event configuration
    event_group = parser.add_argument_group('Event Configuration')
    event_group.add_argument(
        '--root-event-id',
        type=str,
        help='identifier of the recurring root event (env: ROOT_EVENT_ID)',
    )
    event_group.add_argument(
        '--event-id',
        type=str,
        help='identifier of the listing to watch (env: EVENT_ID)',
    )
    event_group.add_argument(
        '--page-url',
        type=str,
        help='ticket page URL template with {root_event_id} and {event_id} (env: PAGE_URL)',
    )

    # Notification configuration
    notification_group = parser.add_argument_group('Notification Configuration')
    notification_group.add_argument(
        '--webhook-url',
        type=str,
        help='chat webhook to post announcements to (env: WEBHOOK_URL)',
    )
    notification_group.add_argument(
        '--mention-id',
        type=str,
        help='role id or mention text prepended to announcements (env: MENTION_ID)',
    )

    # State configuration
    state_group = parser.add_argument_group('State')
    state_group.add_argument(
        '--state-file',
        type=str,
        help='path of the persisted event state (env: STATE_FILE)',
    )
    state_group.add_argument(
        '--check-interval-minutes',
        type=float,
        help='minimum minutes between page checks (env: CHECK_INTERVAL_MS)',
    )
    state_group.add_argument(
        '--reset-granularity',
        choices=[g.value for g in ResetGranularity],
        help='how a changed release date is detected (env: RESET_GRANULARITY)',
    )
    state_group.add_argument(
        '--show-state',
        action='store_true',
        help='print the persisted state and exit without checking the page',
    )

    # Fetcher configuration
    fetch_group = parser.add_argument_group('Fetcher Configuration')
    fetch_group.add_argument(
        '--fetcher',
        choices=['http', 'browser'],
        help='how to fetch the ticket page (env: FETCHER)',
    )
    fetch_group.add_argument(
        '--headless',
        action='store_true',
        default=None,
        help='run the browser fetcher headless',
    )
    fetch_group.add_argument(
        '--no-headless',
        dest='headless',
        action='store_false',
        help='run the browser fetcher with a visible window',
    )
    fetch_group.add_argument(
        '--timeout',
        type=int,
        help='seconds before a page fetch gives up (env: FETCH_TIMEOUT)',
    )

    # Logging configuration
    log_group = parser.add_argument_group('Logging')
    log_group.add_argument(
        '--log-level',
        type=str,
        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'],
        help='Logging level (env: LOG_LEVEL)',
    )
    log_group.add_argument(
        '--verbose', '-v',
        action='store_const',
        const='DEBUG',
        dest='log_level',
        help='Enable verbose output (same as --log-level DEBUG)',
    )
    log_group.add_argument(
        '--log-file',
        type=str,
        help='also write logs to this file (env: LOG_FILE)',
    )

    parser.add_argument(
        '--version',
        action='version',
        version=f'%(prog)s {__version__}',
        help='show version and exit',
    )

    if args is None:
        args = sys.argv[1:]
    return parser.parse_args(args)


def apply_args(config: AppConfig, args: argparse.Namespace) -> AppConfig:
    """Override ``config`` with the command line arguments that were given.

    Args:
        config: Configuration loaded from the environment.
        args: Parsed command line arguments.

    Returns:
        AppConfig: The same configuration, updated in place.
    """
    if args.root_event_id:
        config.root_event_id = args.root_event_id

    if args.event_id:
        config.event_id = args.event_id

    if args.page_url:
        config.page_url = args.page_url

    if args.webhook_url:
        config.notification.notify_target = args.webhook_url

    if args.mention_id is not None:
        config.notification.mention_id = args.mention_id

    if args.state_file:
        config.state_file = args.state_file

    if args.check_interval_minutes is not None:
        config.check_interval_ms = int(args.check_interval_minutes * 60 * 1000)

    if args.reset_granularity:
        config.reset_granularity = ResetGranularity(args.reset_granularity)

    if args.fetcher:
        config.fetch.backend = args.fetcher

    if args.headless is not None:
        config.fetch.headless = args.headless

    if args.timeout is not None:
        config.fetch.timeout = args.timeout

    if args.log_level:
        config.log_level = args.log_level

    if args.log_file:
        config.log_file = args.log_file

    return config


def configure_logging(level: str = 'INFO', log_file: Optional[str] = None) -> None:
    """Configure logging for the application.

    Args:
        level: Logging level as a string (e.g., 'INFO', 'DEBUG').
        log_file: Optional path of a file that receives the same records.
    """
    handlers: List[logging.Handler] = [logging.StreamHandler()]
    if log_file:
        handlers.append(logging.FileHandler(log_file))

    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=handlers,
        force=True,
    )

    # Keep transport chatter out of the run log
    for noisy in ('httpx', 'httpcore', 'playwright'):
        logging.getLogger(noisy).setLevel(logging.WARNING)


def _format_timestamp(value) -> str:
    return value.isoformat() if value else "unknown"


def print_state(config: AppConfig, state: EventState) -> None:
    """Print the persisted state for the configured event."""
    print("\n=== Ticket Release Notifier ===")
    print(f"\nEvent: {config.root_event_id}/{config.event_id}")
    print(f"State file: {config.state_file}")

    print("\nKnown dates:")
    print(f"  Meet date:    {_format_timestamp(state.meet_date)}")
    print(f"  Release date: {_format_timestamp(state.release_date)}")
    print(f"  Last checked: {_format_timestamp(state.last_checked_at)}")
    print(f"  Sold out:     {'yes' if state.sold_out else 'no'}")

    print("\nAnnounced:")
    if state.announcements:
        for announcement in sorted(a.value for a in state.announcements):
            print(f"  - {announcement}")
    else:
        print("  (nothing yet)")
    print("=" * 31 + "\n")


def report_failure(error: TicketReleaseError) -> None:
    """Log a fatal error with the stage that raised it."""
    logger.error(f"❌ {error.stage} stage failed: {error}")
    if isinstance(error, ParseError):
        logger.error(f"Content that failed to parse:\n{error.raw_content}")


async def async_main(argv: Optional[List[str]] = None) -> int:
    """Async entry point for the CLI."""
    args = parse_args(argv)

    try:
        # Environment first, explicit flags override it
        config = apply_args(load_config(), args)
        configure_logging(level=config.log_level, log_file=config.log_file)
        validate_config(config, require_credentials=not args.show_state)

        if args.show_state:
            print_state(config, StateStore(config.state_file).load())
            return 0

        controller = create_controller(config)
        outcome = await controller.run()

    except TicketReleaseError as e:
        report_failure(e)
        return 1

    if outcome.notified:
        logger.info(f"✅ Run complete, sent {outcome.stage.value} notification")
    else:
        logger.info("✅ Run complete, no notification due")
    return 0


def main() -> int:
    """Main entry point for CLI."""
    try:
        return asyncio.run(async_main())
    except KeyboardInterrupt:
        print("\n👋 Operation cancelled by user")
        return 130


if __name__ == "__main__":
    sys.exit(main())
