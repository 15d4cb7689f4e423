"""Background jobs for Tallr."""
