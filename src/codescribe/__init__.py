"""Codescribe: LLM-generated source documentation synced into Notion."""

__version__ = "0.3.0"
