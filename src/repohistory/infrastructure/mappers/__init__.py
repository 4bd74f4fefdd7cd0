"""Mappers between domain entities and external representations."""
