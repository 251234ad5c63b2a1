"""Directory and search service for AI tools."""
