"""Chess rules engine with negamax-based computer opponents."""
