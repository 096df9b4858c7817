"""HTTP API for tutor-core."""
