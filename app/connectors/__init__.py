"""
app/connectors package marker.
"""

from app.connectors.base import BaseConnector, ConnectorRequestError
from app.connectors.spider_connector import SpiderConnector

__all__ = [
    "BaseConnector",
    "ConnectorRequestError",
    "SpiderConnector",
]
