"""Contract rendering, delivery and signature capture."""
