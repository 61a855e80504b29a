#!/usr/bin/env python3
"""
CLI Router for article ingestion.

Modular command architecture; this is the transport in front of the
article writer.
"""

import argparse
import logging
import sys
from typing import Optional, List

from article_ingest.commands import get_command, COMMANDS
from article_ingest.commands.base import EXIT_FAILURE, EXIT_VALIDATION_ERROR
from article_ingest.config import LOG_FORMAT, get_config_manager
from article_ingest.exceptions import ConfigurationError
from article_ingest.models import Sentiment

logger = logging.getLogger(__name__)


class CLIRouter:
    """
    CLI router for ingestion commands.

    Command structure:
    - python run.py articles create --source-id ... --title ... --link ... --published ...
    - python run.py articles import --file collected.jsonl --workers 8
    - python run.py health database
    """

    def __init__(self, container=None):
        """Build the parser; container overrides the process-wide service container."""
        self.container = container
        self.parser = self._create_parser()

    def _create_parser(self) -> argparse.ArgumentParser:
        """Top-level parser with one subparser per command."""
        parser = argparse.ArgumentParser(
            description="News article ingestion",
            formatter_class=argparse.RawDescriptionHelpFormatter,
            epilog=self._get_examples_text()
        )

        subparsers = parser.add_subparsers(
            dest='command',
            help='Available commands',
            metavar='{command}'
        )

        self._command_parsers = {}
        self._add_articles_parser(subparsers)
        self._add_health_parser(subparsers)

        return parser

    def _add_articles_parser(self, subparsers):
        """Register `articles create|import`."""
        articles_parser = self._command_parsers['articles'] = subparsers.add_parser(
            'articles',
            help='Create articles and import collector output'
        )

        articles_subparsers = articles_parser.add_subparsers(
            dest='subcommand',
            help='Article operations',
            metavar='{create,import}'
        )

        # Create subcommand
        create_parser = articles_subparsers.add_parser('create', help='Create one article')
        create_parser.add_argument('--source-id', required=True, help='UUID of an existing RSS source')
        create_parser.add_argument('--title', required=True, help='Article title')
        create_parser.add_argument('--link', required=True, help='Article URL (must be unique)')
        create_parser.add_argument('--published', required=True, help='Publication date, ISO 8601 with timezone')
        create_parser.add_argument('--description', default=None, help='Article description')
        create_parser.add_argument('--sentiment', choices=[s.value for s in Sentiment], default=None, help='Sentiment classification')
        create_parser.add_argument('--topic', action='append', help='UUID of an existing topic (repeatable)')

        # Import subcommand
        import_parser = articles_subparsers.add_parser('import', help='Create every record of a collector file')
        import_parser.add_argument('--file', required=True, help='JSON array or JSON Lines file of article records')
        import_parser.add_argument('--workers', type=int, default=None, help='Concurrent creations (default: IMPORT_WORKERS)')
        import_parser.add_argument('--verbose', action='store_true', help='Print every outcome')

    def _add_health_parser(self, subparsers):
        """Register `health check|database`."""
        health_parser = self._command_parsers['health'] = subparsers.add_parser(
            'health',
            help='Storage health monitoring'
        )

        health_subparsers = health_parser.add_subparsers(
            dest='subcommand',
            help='Health operations',
            metavar='{check,database}'
        )

        health_subparsers.add_parser('check', help='Run health check')
        health_subparsers.add_parser('database', help='Check database health')

    def _get_examples_text(self) -> str:
        """Help epilog with usage and exit codes."""
        return """
Examples:
  python run.py articles create --source-id 7c0e... --title "Headline" \\
      --link https://example.com/a --published 2025-11-15T10:00:00Z --topic 5d1f...
  python run.py articles import --file collected.jsonl --workers 8
  python run.py health database

Exit codes:
  0 created, 1 storage failure, 2 invalid request, 3 unknown source,
  4 unknown topics, 5 duplicate link
"""

    def route_command(self, args: Optional[List[str]] = None) -> int:
        """
        Parse arguments and run the selected command.

        Args:
            args: Command line arguments (uses sys.argv if None)

        Returns:
            Exit code
        """
        try:
            if args is None:
                args = sys.argv[1:]

            parsed_args = self.parser.parse_args(args)

            if not parsed_args.command:
                self.parser.print_help()
                return EXIT_FAILURE

            return self._handle_command(parsed_args)

        except SystemExit as e:
            # argparse exits on --help and on usage errors
            return e.code if e.code is not None else 0

    def _handle_command(self, args: argparse.Namespace) -> int:
        """Dispatch parsed arguments to the command registry."""
        logger.debug(f"Handling command: {args.command}")

        if args.command not in COMMANDS:
            available = ', '.join(COMMANDS.keys())
            logger.error(f"Unknown command '{args.command}'. Available: {available}")
            return EXIT_FAILURE

        subcommand = getattr(args, 'subcommand', None)
        if not subcommand:
            logger.error(f"No subcommand specified for '{args.command}'")
            self._command_parsers[args.command].print_help()
            return EXIT_FAILURE

        try:
            command = get_command(args.command, self.container)
            return command.execute(subcommand, args)
        except ConfigurationError as e:
            logger.error(f"{e}")
            return EXIT_VALIDATION_ERROR


def main(args: Optional[List[str]] = None) -> int:
    """
    Main CLI entry point.

    Args:
        args: Command line arguments (uses sys.argv if None)

    Returns:
        Exit code
    """
    logging.basicConfig(
        level=logging.INFO,
        format=LOG_FORMAT
    )

    try:
        get_config_manager().update_logging()
    except ConfigurationError as e:
        logger.error(f"{e}")
        return EXIT_VALIDATION_ERROR

    router = CLIRouter()
    return router.route_command(args)


if __name__ == '__main__':
    sys.exit(main())
