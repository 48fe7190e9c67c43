"""Rendezvous relay plus host-side helpers for login, files, input, terminal and screen capture."""

__version__ = "0.1.0"