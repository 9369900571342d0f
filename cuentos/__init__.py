"""Illustrated and narrated short stories generated with Gemini."""
