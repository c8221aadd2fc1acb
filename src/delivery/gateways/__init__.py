"""Transports the delivery client can connect through."""
