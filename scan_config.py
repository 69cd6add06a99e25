import os
import logging
from typing import List, Optional
from dotenv import load_dotenv

# Load environment variables
load_dotenv()

logger = logging.getLogger('seo_health')

# Provider credential names
SERPAPI_KEY = "SERPAPI_KEY"
GOOGLE_API_KEY = "GOOGLE_API_KEY"  # Knowledge Graph + Natural Language
PAGESPEED_API_KEY = "PAGESPEED_API_KEY"
WHOIS_API_KEY = "WHOIS_API_KEY"
GOOGLE_CSE_API_KEY = "GOOGLE_CSE_API_KEY"
GOOGLE_CSE_ID = "GOOGLE_CSE_ID"
GOOGLE_ADS_CUSTOMER_ID = "GOOGLE_ADS_CUSTOMER_ID"
GOOGLE_ADS_DEVELOPER_TOKEN = "GOOGLE_ADS_DEVELOPER_TOKEN"
GOOGLE_ADS_ACCESS_TOKEN = "GOOGLE_ADS_ACCESS_TOKEN"

DEFAULT_SERP_LOCATION = "United States"
DEFAULT_REGIONAL_LOCATIONS = ["United States", "India", "United Kingdom"]
DEFAULT_SERP_REQUEST_DELAY = 1.0
DEFAULT_MAX_SERP_KEYWORDS = 20
DEFAULT_RESULTS_DIR = os.path.join('results', 'scans')


def get_credential(name: str) -> Optional[str]:
    """Returns a provider credential, or None when it is not configured.

    Read from the environment on every call.
    """
    value = os.environ.get(name)
    if not value:
        logger.debug(f"Credential {name} is not configured")
        return None
    return value.strip()


def get_pagespeed_key() -> Optional[str]:
    return get_credential(PAGESPEED_API_KEY) or get_credential(GOOGLE_API_KEY)


def get_ads_credentials() -> Optional[dict]:
    """Keyword Planner needs all three values; otherwise it is unavailable."""
    customer_id = get_credential(GOOGLE_ADS_CUSTOMER_ID)
    developer_token = get_credential(GOOGLE_ADS_DEVELOPER_TOKEN)
    access_token = get_credential(GOOGLE_ADS_ACCESS_TOKEN)
    if not (customer_id and developer_token and access_token):
        return None
    return {
        'customer_id': customer_id.replace('-', ''),
        'developer_token': developer_token,
        'access_token': access_token,
    }


def get_serp_location() -> str:
    return os.environ.get("SERP_LOCATION", DEFAULT_SERP_LOCATION)


def get_regional_locations() -> List[str]:
    raw = os.environ.get("SERP_REGIONAL_LOCATIONS")
    if not raw:
        return list(DEFAULT_REGIONAL_LOCATIONS)
    return [location.strip() for location in raw.split(',') if location.strip()]


def get_serp_request_delay() -> float:
    raw = os.environ.get("SERP_REQUEST_DELAY")
    if raw is None:
        return DEFAULT_SERP_REQUEST_DELAY
    try:
        return max(0.0, float(raw))
    except ValueError:
        logger.warning(f"Invalid SERP_REQUEST_DELAY value {raw!r}, using {DEFAULT_SERP_REQUEST_DELAY}")
        return DEFAULT_SERP_REQUEST_DELAY


def get_max_serp_keywords() -> int:
    raw = os.environ.get("MAX_SERP_KEYWORDS")
    if raw is None:
        return DEFAULT_MAX_SERP_KEYWORDS
    try:
        return max(1, int(raw))
    except ValueError:
        logger.warning(f"Invalid MAX_SERP_KEYWORDS value {raw!r}, using {DEFAULT_MAX_SERP_KEYWORDS}")
        return DEFAULT_MAX_SERP_KEYWORDS


def get_results_dir() -> str:
    """Directory holding one JSON file per scan."""
    return os.environ.get("SCAN_RESULTS_DIR", os.path.join(os.getcwd(), DEFAULT_RESULTS_DIR))


def describe_configuration() -> dict:
    """Which providers are configured, for the health endpoint and the CLI."""
    return {
        "serpapi": bool(get_credential(SERPAPI_KEY)),
        "knowledge_graph": bool(get_credential(GOOGLE_API_KEY)),
        "natural_language": bool(get_credential(GOOGLE_API_KEY)),
        "pagespeed": bool(get_pagespeed_key()),
        "whois_api": bool(get_credential(WHOIS_API_KEY)),
        "custom_search": bool(get_credential(GOOGLE_CSE_API_KEY) and get_credential(GOOGLE_CSE_ID)),
        "keyword_planner": get_ads_credentials() is not None,
    }
