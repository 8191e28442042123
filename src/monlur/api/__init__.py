"""HTTP service boundary."""
