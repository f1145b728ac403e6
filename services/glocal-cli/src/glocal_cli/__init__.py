"""Glocal command-line interface."""
