"""API routing package."""
