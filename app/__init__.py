"""Civic issue tracker API package."""
