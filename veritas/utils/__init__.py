"""Logging, identifier and HTTP client helpers."""
