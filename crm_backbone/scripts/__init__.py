"""Command-line analysis scripts."""
