"""Event listings."""
