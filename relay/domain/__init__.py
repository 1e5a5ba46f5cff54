"""Domain rules (slugs, payload summaries, record shape) independent of storage."""
