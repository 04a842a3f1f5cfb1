"""Vault: a real-time group chat relay.

Clients connect over a WebSocket, pass a shared access code, broadcast text
messages to every connected peer and see a rolling history plus live
presence and typing state.
"""

__version__ = "0.1.0"
