"""Cross-cutting pieces: faults, result values and logging."""
