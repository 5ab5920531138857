"""Versioned REST routers mounted by api/main.py."""
