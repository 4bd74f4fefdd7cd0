"""Domain layer for the repository history."""
