#!/usr/bin/env python3
"""
Article commands: create single articles and import collector batches.
"""

import json
from argparse import Namespace
from collections import Counter
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Tuple

from .base import BaseCommand, EXIT_OK, EXIT_FAILURE, exit_code_for
from article_ingest.exceptions import ErrorRecovery, IngestError, RequestValidationError
from article_ingest.formatters import format_article_line
from article_ingest.models import CreateArticleCommand


def error_body(error: IngestError) -> Dict[str, Any]:
    """Build the error payload reported for a failed creation."""
    return {
        'error': error.message,
        'code': error.error_code,
        'details': error.context,
        'timestamp': datetime.now(timezone.utc).isoformat()
    }


def load_records(path: Path) -> List[Any]:
    """
    Read collector output: a JSON array, or one JSON object per line.

    Raises:
        ValueError: File is neither form
    """
    text = path.read_text(encoding='utf-8').strip()
    if not text:
        return []
    if text.startswith('['):
        records = json.loads(text)
        if not isinstance(records, list):
            raise ValueError(f"{path} does not contain a JSON array")
        return records
    return [json.loads(line) for line in text.splitlines() if line.strip()]


class ArticlesCommand(BaseCommand):
    """Create articles from the collector, one at a time or in batches."""

    SUBCOMMANDS = ('create', 'import')

    def execute(self, subcommand: str, args: Namespace) -> int:
        """Execute articles subcommand."""
        try:
            if subcommand == "create":
                return self.create(args)
            elif subcommand == "import":
                return self.import_file(args)
            else:
                available = ", ".join(self.get_available_subcommands())
                self.logger.error(f"Unknown subcommand '{subcommand}'. Available: {available}")
                return EXIT_FAILURE

        except (IngestError, OSError, ValueError, KeyboardInterrupt) as e:
            return self.handle_error(e, f"articles {subcommand}")

    def create(self, args: Namespace) -> int:
        """Create one article from command line arguments."""
        payload = {
            'sourceId': args.source_id,
            'title': args.title,
            'link': args.link,
            'publicationDate': args.published,
            'description': args.description,
            'sentiment': args.sentiment,
            'topicIds': args.topic or [],
        }

        try:
            command = CreateArticleCommand.from_dict(payload, self.config.app)
            created = self.create_article_writer().create(command)
        except IngestError as e:
            print(json.dumps(error_body(e), indent=2, ensure_ascii=False))
            return self.handle_error(e, "articles create")

        print(json.dumps(created.to_response(), indent=2, ensure_ascii=False))
        return EXIT_OK

    def import_file(self, args: Namespace) -> int:
        """Create every record in a collector file, each independently."""
        records = load_records(Path(args.file))
        if not records:
            print(f"No records in {args.file}")
            return EXIT_OK

        workers = args.workers or self.config.app.import_workers
        writer = self.create_article_writer()
        app_config = self.config.app

        def ingest(record: Any) -> Tuple[str, Any]:
            try:
                command = CreateArticleCommand.from_dict(record, app_config)
                return 'created', writer.create(command).to_response()
            except IngestError as e:
                return e.error_code, e

        self.logger.info(f"Importing {len(records)} records with {workers} workers")
        with ThreadPoolExecutor(max_workers=workers) as executor:
            outcomes = list(executor.map(ingest, records))

        counts = Counter(outcome for outcome, _ in outcomes)
        storage_failures = 0
        retryable = 0
        for index, (outcome, result) in enumerate(outcomes):
            if outcome == 'created':
                if args.verbose:
                    print(format_article_line(result))
            else:
                if exit_code_for(result) == EXIT_FAILURE:
                    storage_failures += 1
                if ErrorRecovery.is_retryable_error(result):
                    retryable += 1
                if args.verbose or not isinstance(result, RequestValidationError):
                    print(f"  #{index}: {outcome} - {result.message}")

        print(f"\nImported {len(records)} records from {args.file}")
        for outcome, count in sorted(counts.items()):
            print(f"  {outcome}: {count}")
        if retryable:
            print(f"  retryable: {retryable} (store unreachable, safe to import again)")

        return EXIT_FAILURE if storage_failures else EXIT_OK
