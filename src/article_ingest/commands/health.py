#!/usr/bin/env python3
"""
Health check command for monitoring the storage gateway.
"""

from argparse import Namespace

from .base import BaseCommand, EXIT_OK, EXIT_FAILURE
from article_ingest.exceptions import IngestError


class HealthCommand(BaseCommand):
    """Handle system health monitoring and diagnostics."""

    SUBCOMMANDS = ('check', 'database')

    def execute(self, subcommand: str, args: Namespace) -> int:
        """Execute health subcommand."""
        try:
            if subcommand in ("check", "database"):
                return self.database(args)
            else:
                available = ", ".join(self.get_available_subcommands())
                self.logger.error(f"Unknown subcommand '{subcommand}'. Available: {available}")
                return EXIT_FAILURE

        except IngestError as e:
            return self.handle_error(e, f"health {subcommand}")

    def database(self, args: Namespace) -> int:
        """Check storage gateway health."""
        print("📊 Database Status:")
        health = self.gateway.health_check()

        if not health.get('connected'):
            print("  ❌ Database connection: FAILED")
            print(f"     Error: {health.get('error', 'Unknown error')}")
            return EXIT_FAILURE

        print(f"  ✅ Database connection: OK ({health.get('method')}, schema={health.get('schema')})")
        writes = "transactional" if health.get('transactions') else "compensating"
        print(f"  🔒 Article writes: {writes}")
        if health.get('version'):
            print(f"  🐘 {health['version']}")
        return EXIT_OK
