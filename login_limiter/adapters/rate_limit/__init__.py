"""Shared counter store adapters.

This package provides a small abstraction layer over the store that holds
per-identity attempt windows and block records, so the rate limit engine can
run against Redis in production and an in-memory store in tests and local
development without changes.
"""
