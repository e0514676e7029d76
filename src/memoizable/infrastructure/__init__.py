"""Infrastructure layer: persistence and deferred capture jobs."""
