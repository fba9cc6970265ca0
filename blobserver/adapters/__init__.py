"""Outbound adapters package for the blob server.

Provides namespaced access to external integration layers:
- storage: the Google Cloud Storage blob adapter, its JSON API client and OAuth2 token sources

This module avoids eager imports to reduce side effects at startup.
"""

# namespace for outbound adapters

__all__ = [
    "storage",
]
