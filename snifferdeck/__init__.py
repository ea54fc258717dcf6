# ============================================================================
# snifferdeck/__init__.py
# Package Marker for the Sniffer Configuration Deck
# ============================================================================
#
# PURPOSE:
# Client-side lifecycle management for port-addressed sniffer instances:
# drafts, saves, edits, start/stop and bulk import/export, reconciled
# against a remote Sniffer Control Service.
#
# LAYOUT:
# - base/     configuration, logging setup, error taxonomy
# - data/     entities, the row store, the import/export codec
# - net/      HTTP client for the control service
# - control/  the sync controller, guards, field editors, notifications
# - cli/      command-line front end
#
# ============================================================================

__version__ = "0.3.0"
