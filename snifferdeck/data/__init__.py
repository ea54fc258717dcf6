"""Entities, the row store and the import/export codec."""
