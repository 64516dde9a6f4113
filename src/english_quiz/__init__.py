"""English quiz trainer with per-question performance tracking."""
