"""Command-line interface for the Walrus SDK."""
