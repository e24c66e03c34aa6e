"""Slow-changing host facts collected about once an hour."""
