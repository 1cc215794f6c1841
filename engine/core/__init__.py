"""Core engine components: value types, pieces, board, evaluators and search."""
