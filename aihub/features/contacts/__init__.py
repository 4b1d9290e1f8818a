"""
Contacts feature package.

The CRM slice: normalizing lead data from tool output and spreadsheets,
ingesting it, listing contacts with search, tag filters and sorting,
bulk tagging, deletion and CSV export. Every layer (domain, repositories,
services, API router) lives here.
"""

from .api.router import router as contacts_router  # noqa: F401
from .domain.models import ContactData, ContactQuery, IngestionResult  # noqa: F401
from .services.normalization import normalize_contact, normalize_contact_data  # noqa: F401
from .services.lead_detection import classify_output, detect_lead_array  # noqa: F401
