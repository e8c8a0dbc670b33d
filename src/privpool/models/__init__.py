"""Pydantic models exchanged with collaborators."""
