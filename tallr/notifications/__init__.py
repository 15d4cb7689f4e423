"""Native notification delivery."""
