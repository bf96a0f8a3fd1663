"""HTTP surface of the enhancement pipeline."""
