"""Pydantic models: enums, status records, hook actions and configuration."""
