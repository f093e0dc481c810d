"""EduRAG - retrieval-augmented answers over educational documents."""

__version__ = "0.1.0"
