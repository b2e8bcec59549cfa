"""
HTTP routers for the BuildTrust API.

Each module exposes a ``router`` included by ``app.application.factory``.
"""
