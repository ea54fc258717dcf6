"""Outbound HTTP to the Sniffer Control Service."""
