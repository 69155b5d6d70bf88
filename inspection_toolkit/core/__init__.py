"""Document model, tree store and editing services."""
