"""Command line interface for cryptctl."""
