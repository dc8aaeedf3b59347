"""Shared helpers: exceptions, validation, datetime handling and logging."""
