"""JSON API for the mail agent.

Run with ``uvicorn --factory mail_agent.web:create_app``.
"""

from .app import create_app

__all__ = ["create_app"]
