#!/usr/bin/env python3
"""
Article ingestion for the news feed.

Validates collector-submitted articles against existing sources and topics,
stores each article with its topic associations all-or-nothing, and rejects
duplicate links.
"""

__version__ = "1.0.0"
