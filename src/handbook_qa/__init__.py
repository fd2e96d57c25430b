"""handbook-qa — retrieval-augmented question answering over a PDF handbook."""
