"""Lifecycle control: the sync controller, its guards, editors and notifications."""
