"""Clients for remote APIs."""
