"""Fake collaborators for tests and --mock mode."""
