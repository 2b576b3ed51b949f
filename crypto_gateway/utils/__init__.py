"""Helper utilities shared across the service."""
