"""
at2felt - Airtable to Felt layer sync.

Exports approved submissions from Airtable as CSV, exposes the file through
an ngrok tunnel, and creates or refreshes a Felt map layer from it.
"""

__version__ = "0.1.0"
