"""Catalog package exports."""

from .categories import CATEGORIES, Category, CategoryDescriptor
from .client import TourApiClient, parse_tour_response
from .models import ExternalRecord, LocalRecord, SourcePage

__all__ = [
    "CATEGORIES",
    "Category",
    "CategoryDescriptor",
    "TourApiClient",
    "parse_tour_response",
    "ExternalRecord",
    "LocalRecord",
    "SourcePage",
]
