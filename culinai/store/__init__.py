"""Application state: store, persistence and cooking mode."""
