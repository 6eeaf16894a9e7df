"""Database configuration and utilities.

``shoptalk.db.time`` has no settings dependency so the client layer can import
it; the engine lives in ``shoptalk.db.session``.
"""
