"""
Workflow services: join requests, membership, chat, attendance, reputation.

Import modules directly, e.g.:

    from tripcrew.services.requests import RequestLedger
"""

__all__: list[str] = []
