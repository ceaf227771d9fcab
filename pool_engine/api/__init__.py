"""HTTP simulation surface for the pool engine."""
