"""Safeguards (rate limiting)."""
