"""Factories wiring application services together."""
