"""Pydantic models for profiles, content, gate state and history."""
