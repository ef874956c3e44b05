"""
Shared live objects for the AdScreener notification server.

Route modules import from here so they all see the same store and hub.
"""
from adscreener.hub import RealtimeHub
from adscreener.store import NotificationStore

# Persisted notifications, newest first per user
store: NotificationStore = NotificationStore()

# user_id -> live realtime socket
hub: RealtimeHub = RealtimeHub()


def reset():
    """Replace the store and hub with empty ones."""
    global store, hub
    store = NotificationStore()
    hub = RealtimeHub()
