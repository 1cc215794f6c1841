"""Text codecs: FEN positions, SAN moves and PGN games."""
