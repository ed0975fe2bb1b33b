"""Conversational agents."""
