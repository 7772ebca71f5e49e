"""Session state and authentication workflow."""
