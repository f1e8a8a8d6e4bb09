"""Small helpers shared across the driver."""
