"""Reporting of store changes."""
