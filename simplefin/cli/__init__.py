"""CLI interface for the simplefin client library.

This package provides command-line access to a SimpleFIN bridge: claiming
setup tokens, querying bridge info, and listing accounts, organizations and
transactions as text, JSON or CSV.
"""
