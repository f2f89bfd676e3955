"""Node fan-out and local process execution."""
