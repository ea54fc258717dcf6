"""Foundational pieces every other package depends on."""
#
# WHAT'S IN THIS MODULE:
# - config.py: endpoint, export and logging settings (env driven)
# - errors.py: structured error taxonomy (network and parse failures)
#
