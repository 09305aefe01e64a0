"""
Application-wide constants for the Safe Route Navigator backend.

This module contains all shared constants used across the application.
"""

# ========= Service Configuration =========
# Service configuration: service_name -> (module_path, port)
SERVICES = {
    "crime": ("services.crime.main", 20001),
    "ratings": ("services.ratings.main", 20002),
    "news_risk": ("services.news_risk.main", 20003),
    "sos": ("services.sos.main", 20004),
}

# Docs service (service discovery)
DOCS_SERVICE = ("docs.main", 8080)

# ========= Crime Data Configuration =========
# Bounding-box radius in degrees (~1.1 km of latitude)
DEFAULT_CRIME_RADIUS_DEG = 0.01
# Radius used when sampling route points and segment midpoints
ROUTE_SAMPLE_RADIUS_DEG = 0.005
# Local incidents older than this are not considered
INCIDENT_WINDOW_DAYS = 30
LOCAL_INCIDENT_LIMIT = 50
# "recent" bucket in crime statistics
RECENT_WINDOW_DAYS = 7
# Route safety samples at most this many points
MAX_ROUTE_SAMPLES = 10

# ========= Ratings Configuration =========
DEFAULT_HEATMAP_RADIUS_DEG = 0.02
DEFAULT_LOCATION_RADIUS_DEG = 0.005
# Approximately 100m grid cells
HEATMAP_GRID_RESOLUTION_DEG = 0.001
HEATMAP_WINDOW_DAYS = 90
LOCATION_RATINGS_LIMIT = 20
MAX_COMMENT_LENGTH = 300

# ========= News Risk Configuration =========
# Articles below this relevance are dropped
NEWS_RELEVANCE_THRESHOLD = 0.3
# Zones are only built from articles at or above this relevance,
# including pre-scored alerts that never pass through analysis
ZONE_MIN_RELEVANCE = NEWS_RELEVANCE_THRESHOLD
# Danger zones need at least this location confidence
ZONE_MIN_CONFIDENCE = 0.3
# Zones further than max(this, zone radius) are ignored for a point
ZONE_MAX_DISTANCE_KM = 2.0
# Risk factors above this are reported back to the caller
RISK_FACTOR_THRESHOLD = 0.3
NEWS_CACHE_BUCKET_S = 30 * 60

# ========= Live Location Configuration =========
LIVE_LOCATION_KEY_PREFIX = "live_location:"
DEFAULT_SHARE_DURATION_MIN = 60
