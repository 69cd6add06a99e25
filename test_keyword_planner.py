import asyncio

from seo_probes.keyword_planner import KeywordPlannerClient, parse_keyword_idea

IDEAS_RESPONSE = {
    "results": [
        {
            "text": "running shoes",
            "keywordIdeaMetrics": {
                "avgMonthlySearches": "74000",
                "competition": "HIGH",
                "competitionIndex": "100",
                "lowTopOfPageBidMicros": "850000",
                "highTopOfPageBidMicros": "2400000",
            },
        },
        {"text": "trail gear"},
    ]
}


def configure_ads(monkeypatch):
    monkeypatch.setenv("GOOGLE_ADS_CUSTOMER_ID", "123-456-7890")
    monkeypatch.setenv("GOOGLE_ADS_DEVELOPER_TOKEN", "dev-token")
    monkeypatch.setenv("GOOGLE_ADS_ACCESS_TOKEN", "access-token")


def test_unconfigured_returns_none():
    assert asyncio.run(KeywordPlannerClient().get_keyword_metrics(["running shoes"])) is None


def test_partial_credentials_count_as_unconfigured(monkeypatch):
    monkeypatch.setenv("GOOGLE_ADS_CUSTOMER_ID", "123-456-7890")
    assert asyncio.run(KeywordPlannerClient().get_keyword_metrics(["running shoes"])) is None


def test_keyword_metrics(monkeypatch):
    configure_ads(monkeypatch)
    sent = {}

    async def fake_request(self, url, payload, headers):
        sent.update(url=url, payload=payload, headers=headers)
        return IDEAS_RESPONSE

    monkeypatch.setattr(KeywordPlannerClient, "_request", fake_request)

    metrics = asyncio.run(KeywordPlannerClient().get_keyword_metrics([f"kw {i}" for i in range(15)]))

    assert sent["url"].endswith("/1234567890:generateKeywordIdeas")
    assert len(sent["payload"]["keywordSeed"]["keywords"]) == 10
    assert sent["headers"]["developer-token"] == "dev-token"
    assert metrics[0]["avg_monthly_searches"] == 74000
    assert metrics[0]["high_top_of_page_bid"] == 2.4
    assert metrics[1]["competition"] == "UNKNOWN"


def test_failed_request_returns_none(monkeypatch):
    configure_ads(monkeypatch)

    async def fake_request(self, url, payload, headers):
        return None

    monkeypatch.setattr(KeywordPlannerClient, "_request", fake_request)

    assert asyncio.run(KeywordPlannerClient().get_keyword_metrics(["running shoes"])) is None


def test_empty_seed_list(monkeypatch):
    configure_ads(monkeypatch)
    assert asyncio.run(KeywordPlannerClient().get_keyword_metrics([])) == []


def test_parse_keyword_idea_defaults():
    assert parse_keyword_idea({"text": "shoes"}) == {
        "keyword": "shoes",
        "avg_monthly_searches": 0,
        "competition": "UNKNOWN",
        "competition_index": 0,
        "low_top_of_page_bid": 0.0,
        "high_top_of_page_bid": 0.0,
    }
