"""Shared test support for litelib tests."""
