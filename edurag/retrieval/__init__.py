"""Second-pass reranking of retrieval candidates."""
