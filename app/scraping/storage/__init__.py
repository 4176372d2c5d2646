"""
Storage layer exports.
"""

from app.scraping.storage.base import AuditComputer, CrawlStorage
from app.scraping.storage.sqlalchemy_storage import SQLAlchemyCrawlStorage

__all__ = ["AuditComputer", "CrawlStorage", "SQLAlchemyCrawlStorage"]
