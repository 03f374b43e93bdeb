"""
Constants for usage report generation and the Monitor OData feed.
"""

# =============================================================================
# Time Window Defaults
# =============================================================================

# An explicit start with no end covers 23h59m59s
DEFAULT_WINDOW_SECONDS = 86399

# Minimum gap between start and now, and between start and end
MIN_WINDOW_SECONDS = 1

# Clock components applied to bare dates
DAY_START_TIME = (0, 0, 0)
DAY_END_TIME = (23, 59, 59)

# =============================================================================
# Monitor Service OData
# =============================================================================

ODATA_VERSION = "v3"
ODATA_BASE_PATH = "/Citrix/Monitor/OData/{version}/Data"

ENTITY_DELIVERY_GROUPS = "DesktopGroups"
ENTITY_MACHINES = "Machines"
ENTITY_SESSIONS = "Sessions"

# Fields requested per entity set
DELIVERY_GROUP_FIELDS = ["Id", "Name"]
MACHINE_FIELDS = ["Id", "DesktopGroupId"]
SESSION_FIELDS = ["StartDate", "EndDate", "Machine/DesktopGroupId"]

# Keys carrying the next page link, by OData flavour
NEXT_LINK_KEYS = ["@odata.nextLink", "odata.nextLink", "__next"]

# =============================================================================
# Execution
# =============================================================================

DEFAULT_REQUEST_TIMEOUT_SECONDS = 60.0
DEFAULT_MAX_WORKERS = 4

# Fetch stages, used in errors and logs
STAGE_DELIVERY_GROUPS = "delivery_groups"
STAGE_MACHINES = "machines"
STAGE_SESSIONS = "sessions"
FETCH_STAGES = [STAGE_DELIVERY_GROUPS, STAGE_MACHINES, STAGE_SESSIONS]

# Export formats supported by the CLI
EXPORT_FORMATS = ["json", "csv"]
