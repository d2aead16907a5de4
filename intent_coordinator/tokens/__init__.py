"""Per-network token registry."""
