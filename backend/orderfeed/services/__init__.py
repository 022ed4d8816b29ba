"""
Services module.

Provides the order feed business logic:
- Appwrite client for order documents and the realtime change feed
- Realtime subscriptions with polling fallback
"""
from orderfeed.services.appwrite_client import AppwriteBackend
from orderfeed.services.realtime import RealtimeService

__all__ = [
    "AppwriteBackend",
    "RealtimeService",
]
