"""HTTP surface of the auto-send service."""
