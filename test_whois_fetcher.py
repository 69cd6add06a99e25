import asyncio
from datetime import datetime, timedelta, timezone

from seo_probes.whois_fetcher import (
    WhoisFetcher,
    calculate_age_years,
    parse_registry_date,
    parse_whois_api_record,
    parse_whois_output,
)

VERISIGN_OUTPUT = """
   Domain Name: EXAMPLE.COM
   Registrar WHOIS Server: whois.iana.org
   Updated Date: 2024-08-14T07:01:34Z
   Creation Date: 1995-08-14T04:00:00Z
   Registry Expiry Date: 2025-08-13T04:00:00Z
   Registrar: RESERVED-Internet Assigned Numbers Authority
"""

NOMINET_OUTPUT = """
    Domain name:
        example.co.uk

    Registrar:
        Example Registrar Ltd [Tag = EXAMPLE]

    Relevant dates:
        Registered on: 26-Aug-1996
        Expiry date:  26-Aug-2026
"""


def test_parse_verisign_output():
    record = parse_whois_output(VERISIGN_OUTPUT)

    assert record["creation_date"] == "1995-08-14T04:00:00Z"
    assert record["expiry_date"] == "2025-08-13T04:00:00Z"
    assert record["registrar"] == "RESERVED-Internet Assigned Numbers Authority"


def test_first_matching_pattern_wins():
    output = "Created: 2001-01-01\nCreation Date: 1999-05-05\n"
    assert parse_whois_output(output)["creation_date"] == "1999-05-05"


def test_parse_empty_output():
    record = parse_whois_output("")
    assert record == {"creation_date": None, "expiry_date": None, "registrar": None, "age_years": None}


def test_parse_registry_date_formats():
    assert parse_registry_date("2020-03-01T10:00:00Z") == datetime(2020, 3, 1, 10, tzinfo=timezone.utc)
    assert parse_registry_date("26-Aug-1996").year == 1996
    assert parse_registry_date("2004.07.15").month == 7
    assert parse_registry_date("not a date") is None
    assert parse_registry_date(None) is None


def test_age_of_a_thousand_day_old_domain():
    now = datetime(2024, 6, 1, tzinfo=timezone.utc)
    created = (now - timedelta(days=1000)).isoformat()

    assert calculate_age_years(created, now=now) == 2


def test_age_unknown_without_creation_date():
    assert calculate_age_years(None) is None
    assert calculate_age_years("garbage") is None


def test_api_record_parsing():
    payload = {
        "WhoisRecord": {
            "registrarName": "GoDaddy.com, LLC",
            "registryData": {
                "createdDate": "2010-02-03T00:00:00Z",
                "expiresDate": "2030-02-03T00:00:00Z",
            },
        }
    }
    record = parse_whois_api_record(payload)

    assert record["creation_date"] == "2010-02-03T00:00:00Z"
    assert record["expiry_date"] == "2030-02-03T00:00:00Z"
    assert record["registrar"] == "GoDaddy.com, LLC"
    assert parse_whois_api_record({"ErrorMessage": {"msg": "quota"}}) is None


def test_fetch_uses_command_output(monkeypatch):
    async def fake_command(self, domain):
        assert domain == "example.com"
        return VERISIGN_OUTPUT

    async def fail_api(self, domain):
        raise AssertionError("API must not be called when the command succeeds")

    monkeypatch.setattr(WhoisFetcher, "_run_whois_command", fake_command)
    monkeypatch.setattr(WhoisFetcher, "_lookup_via_api", fail_api)

    record = asyncio.run(WhoisFetcher().fetch("https://www.example.com/about"))

    assert record["registrar"] == "RESERVED-Internet Assigned Numbers Authority"
    assert record["age_years"] >= 28


def test_fetch_falls_back_to_api_when_nothing_parsed(monkeypatch):
    async def fake_command(self, domain):
        return "No match for domain"

    async def fake_api(self, domain):
        return {"creation_date": "2015-01-01", "expiry_date": None, "registrar": "Registrar", "age_years": None}

    monkeypatch.setattr(WhoisFetcher, "_run_whois_command", fake_command)
    monkeypatch.setattr(WhoisFetcher, "_lookup_via_api", fake_api)

    record = asyncio.run(WhoisFetcher().fetch("example.com"))

    assert record["creation_date"] == "2015-01-01"
    assert record["age_years"] >= 9


def test_fetch_total_failure_returns_empty_record(monkeypatch):
    async def no_output(self, domain):
        return None

    monkeypatch.setattr(WhoisFetcher, "_run_whois_command", no_output)

    # No WHOIS_API_KEY, so the API strategy is skipped too
    record = asyncio.run(WhoisFetcher().fetch("example.com"))

    assert record == {"creation_date": None, "expiry_date": None, "registrar": None, "age_years": None}


def test_subdomain_is_looked_up_by_registrable_domain(monkeypatch):
    seen = []

    async def fake_command(self, domain):
        seen.append(domain)
        return None

    monkeypatch.setattr(WhoisFetcher, "_run_whois_command", fake_command)
    asyncio.run(WhoisFetcher().fetch("blog.example.co.uk"))

    assert seen == ["example.co.uk"]


def test_parse_multiline_registrar_block():
    record = parse_whois_output(NOMINET_OUTPUT)

    assert record["registrar"] == "Example Registrar Ltd [Tag = EXAMPLE]"
    assert record["expiry_date"] == "26-Aug-2026"
    assert record["creation_date"] is None
