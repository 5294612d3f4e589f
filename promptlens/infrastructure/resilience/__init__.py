"""Resilience Layer: request admission control (per-caller rate limiting)."""
