#!/usr/bin/env python3
"""
Shared plumbing for ingestion commands.

Commands resolve config, the storage gateway and article writers through the
service container, and map ingestion errors onto process exit codes.
"""

import logging
from abc import ABC, abstractmethod
from typing import List
from argparse import Namespace

from article_ingest.container import get_container
from article_ingest.exceptions import (
    ConfigurationError, DuplicateLinkError, MissingSourceError, MissingTopicsError,
    RequestValidationError,
)

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_VALIDATION_ERROR = 2
EXIT_MISSING_SOURCE = 3
EXIT_MISSING_TOPICS = 4
EXIT_DUPLICATE_LINK = 5
EXIT_INTERRUPTED = 130


def exit_code_for(error: BaseException) -> int:
    """Map an ingestion outcome onto a process exit code."""
    if isinstance(error, KeyboardInterrupt):
        return EXIT_INTERRUPTED
    if isinstance(error, (RequestValidationError, ConfigurationError)):
        return EXIT_VALIDATION_ERROR
    if isinstance(error, MissingSourceError):
        return EXIT_MISSING_SOURCE
    if isinstance(error, MissingTopicsError):
        return EXIT_MISSING_TOPICS
    if isinstance(error, DuplicateLinkError):
        return EXIT_DUPLICATE_LINK
    return EXIT_FAILURE


class BaseCommand(ABC):
    """
    Base class for all command endpoints.

    Provides common infrastructure like configuration, the shared storage
    gateway and error handling that all commands can use.
    """

    def __init__(self, container=None):
        """
        Initialize command.

        Args:
            container: Service container (defaults to the process-wide one)
        """
        self.logger = logging.getLogger(self.__class__.__name__)
        self._container = container or get_container()

    @property
    def config(self):
        """Validated ingestion configuration."""
        return self._container.get('config')

    @property
    def gateway(self):
        """Get the shared storage gateway from container."""
        return self._container.get('gateway')

    def create_article_writer(self):
        """Create an article writer over the shared gateway."""
        return self._container.get('article_writer')

    @abstractmethod
    def execute(self, subcommand: str, args: Namespace) -> int:
        """
        Run one subcommand.

        Args:
            subcommand: Subcommand name from the router
            args: Parsed command line arguments

        Returns:
            Process exit code
        """

    def get_available_subcommands(self) -> List[str]:
        """Get list of available subcommands for this command."""
        return list(getattr(self, 'SUBCOMMANDS', ()))

    def handle_error(self, error: BaseException, context: str = "") -> int:
        """
        Log a failed command and pick its exit code.

        Args:
            error: Error that ended the command
            context: Command label for the log line

        Returns:
            Exit code from exit_code_for()
        """
        error_msg = f"{context}: {error}" if context else str(error)

        if isinstance(error, KeyboardInterrupt):
            self.logger.info("Command interrupted by user")
        elif exit_code_for(error) == EXIT_FAILURE:
            self.logger.error(error_msg, exc_info=True)
        else:
            self.logger.warning(error_msg)

        return exit_code_for(error)
