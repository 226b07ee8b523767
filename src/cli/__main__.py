"""Allow ``python -m src.cli`` execution (delegates to the ingest CLI)."""

from src.cli.ingest import main

main()
