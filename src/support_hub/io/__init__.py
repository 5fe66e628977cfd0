"""I/O layer: merchant platform connector and ticket storage repository."""
