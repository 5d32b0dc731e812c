"""CineChance recommendation service."""
