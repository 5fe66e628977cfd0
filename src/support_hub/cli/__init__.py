"""Command-line interface for the support hub."""
