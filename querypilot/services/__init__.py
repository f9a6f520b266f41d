"""
Application services
"""

from querypilot.services.query_service import QueryService

__all__ = ["QueryService"]
