"""CLI tools for the scrape-index service.

- ``python -m src.cli.ingest``: ingest URLs or local files, search the
  index and print statistics.

The CLI uses argparse and reuses the application wiring from ``src.main``.
"""
