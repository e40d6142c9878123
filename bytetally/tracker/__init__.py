"""Usage tracking: in-memory state, debounced persistence and scheduling."""
