"""
Domain subpackage for the contacts feature.
"""

from .models import (
    Contact,
    ContactData,
    ContactQuery,
    ImportPreview,
    IngestionResult,
    LeadArrayMatch,
    OutputShape,
    SortField,
    SortOrder,
    TagSuggestions,
)

__all__ = [
    "Contact",
    "ContactData",
    "ContactQuery",
    "ImportPreview",
    "IngestionResult",
    "LeadArrayMatch",
    "OutputShape",
    "SortField",
    "SortOrder",
    "TagSuggestions",
]
