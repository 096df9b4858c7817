"""Command-line interface for tutor-core."""
