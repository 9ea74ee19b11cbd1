#!/usr/bin/env python3
"""
Artwork Indexer CLI entrypoint
"""

from artwork_indexer.cli import app

if __name__ == "__main__":
    app()
