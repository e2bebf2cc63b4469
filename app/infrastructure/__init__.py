"""Infrastructure: cache tiers and SQL persistence."""
