"""Pydantic models for projects, repositories and dependencies."""
