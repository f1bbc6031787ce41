"""Deleted-account gate proxy."""
