"""Service layer components."""
