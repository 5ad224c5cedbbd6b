"""Fetch a Mastodon post, style it, and export a shareable composite image."""

__version__ = "0.1.0"
