"""Command implementations for the rtvm CLI."""
