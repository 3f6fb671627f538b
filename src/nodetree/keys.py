"""Cache key catalogue."""

WORK_POSTS = "cache_work_posts"
WORK_HEADER = "cache_work_header"
FILED_POSTS = "cache_filed_posts"
FILED_HEADER = "cache_filed_header"
ABOUT = "cache_about"
CV = "cache_cv"
LOCATION = "cache_location"
LOCATION_HEADER = "cache_location_header"
LOCATION_POSTS = "cache_location_posts"
HUMAN_HEADER = "cache_human_header"
CONTACT = "cache_contact"
HOME = "cache_home"
GUESTBOOK = "cache_guestbook"

CITY_PREFIX = f"{LOCATION}_city_"


def city_key(city_name: str) -> str:
    """Composite key for one city's location video data."""
    return f"{CITY_PREFIX}{city_name}"
