"""Authentication token handling."""
