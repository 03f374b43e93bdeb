"""Controller data sources.

Provides the DataSource interface and the Monitor Service OData client.
"""

from .base import Credential, DataSource
from .odata_client import MonitorODataClient, extract_page, parse_odata_datetime

__all__ = [
    # Interface
    "DataSource",
    "Credential",
    # OData
    "MonitorODataClient",
    "extract_page",
    "parse_odata_datetime",
]
