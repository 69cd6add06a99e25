"""
Pytest configuration and shared fixtures.

Every test runs with no provider credentials, no Supabase, no SERP delay and
a private scan results directory.
"""

import pytest

import supabase_config
from seo_probes.serp_api import parse_serp_response

CREDENTIAL_VARIABLES = (
    "SERPAPI_KEY",
    "GOOGLE_API_KEY",
    "PAGESPEED_API_KEY",
    "WHOIS_API_KEY",
    "GOOGLE_CSE_API_KEY",
    "GOOGLE_CSE_ID",
    "GOOGLE_ADS_CUSTOMER_ID",
    "GOOGLE_ADS_DEVELOPER_TOKEN",
    "GOOGLE_ADS_ACCESS_TOKEN",
)


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "integration: marks tests that run a whole scan against stubbed probes"
    )


@pytest.fixture(autouse=True)
def isolated_environment(tmp_path, monkeypatch):
    for name in CREDENTIAL_VARIABLES:
        monkeypatch.delenv(name, raising=False)
    for name in ("SERP_LOCATION", "SERP_REGIONAL_LOCATIONS", "MAX_SERP_KEYWORDS"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("SERP_REQUEST_DELAY", "0")
    monkeypatch.setenv("SCAN_RESULTS_DIR", str(tmp_path / "scans"))
    monkeypatch.setattr(supabase_config, "SUPABASE_URL", None)
    yield tmp_path


def organic(domain, title=None, snippet=None, path=""):
    return {
        "title": title or f"{domain} result",
        "link": f"https://{domain}/{path}",
        "snippet": snippet or f"Snippet from {domain}",
        "displayed_link": domain,
    }


@pytest.fixture
def serp_payload():
    """Builds a raw SerpAPI response."""
    def build(domains=("competitor-one.com", "competitor-two.com", "competitor-three.com"),
              total_results=500_000, **features):
        payload = {
            "search_information": {"total_results": total_results},
            "organic_results": [organic(domain) for domain in domains],
        }
        payload.update(features)
        return payload
    return build


@pytest.fixture
def make_serp(serp_payload):
    """Builds the parsed SERP dict SerpApiClient.search() returns."""
    def build(keyword="running shoes", domain="example.com", location="United States",
              device="desktop", **payload_options):
        payload = serp_payload(**payload_options)
        return parse_serp_response(payload, keyword, location, device, domain)
    return build


def lighthouse_payload(performance=0.85, seo=0.92, accessibility=0.78, lcp=2000, cls=0.05, fcp=1500,
                       viewport_score=1, extra_audits=None):
    """A PageSpeed Insights response with the audits the scorers read."""
    audits = {
        "largest-contentful-paint": {"numericValue": lcp, "displayValue": f"{lcp / 1000:.1f} s"},
        "cumulative-layout-shift": {"numericValue": cls, "displayValue": str(cls)},
        "first-contentful-paint": {"numericValue": fcp, "displayValue": f"{fcp / 1000:.1f} s"},
        "max-potential-fid": {"numericValue": 120},
        "viewport": {"score": viewport_score},
    }
    audits.update(extra_audits or {})
    return {
        "id": "https://example.com/",
        "lighthouseResult": {
            "categories": {
                "performance": {"score": performance},
                "seo": {"score": seo},
                "accessibility": {"score": accessibility},
            },
            "audits": audits,
        },
    }
