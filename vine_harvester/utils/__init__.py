"""Small shared helpers (timestamps, durations, endpoint templates)."""
