"""Shared helpers: signals and asyncio task management."""
