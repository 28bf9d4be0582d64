"""Ticket Release Notifier

Checks the ticket page once and announces sale milestones. Meant to be run
by an external scheduler (cron, systemd timer, CI schedule).
"""
import logging
import sys


def main() -> int:
    """Main entry point that runs the CLI once."""
    try:
        # Import here so import errors are reported like any other failure
        from ticket_release_notify.cli import main as cli_main

        return cli_main()

    except Exception as e:
        logging.error(f"Unexpected error: {e}", exc_info=True)
        return 1


if __name__ == "__main__":
    sys.exit(main())
