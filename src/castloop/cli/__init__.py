"""Command-line tools for castloop."""
