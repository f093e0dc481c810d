"""Term-frequency embeddings and the in-memory vector index."""
