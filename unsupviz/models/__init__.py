"""State models for unsupviz."""
