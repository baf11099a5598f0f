"""Reverse image search: provider registry, redirect pipeline, Google proxy,
automated API search and keyword extraction."""
