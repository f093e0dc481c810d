"""Document chunking."""
