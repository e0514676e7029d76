"""Domain layer for Memoizable."""
