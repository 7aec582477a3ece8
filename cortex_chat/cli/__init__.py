"""Command-line interface for Cortex Chat."""
