"""Core data model and exception hierarchy."""
