import asyncio

import pytest

from conftest import organic
from keyword_intelligence import (
    KeywordIntelligence,
    KeywordIntelligenceReport,
    analyze_competitor_gap,
    build_keyword_clusters,
    build_keyword_set,
    compare_device_positions,
    split_competitors,
    suggest_keywords,
    summarize_regional_rankings,
)
from models import KeywordSignal
from seo_probes.serp_api import SerpApiClient


def ranked_at(position, domain="example.com"):
    fillers = [f"competitor-{index}.com" for index in range(1, 10)]
    return fillers[:position - 1] + [domain] + fillers[position - 1:]


def test_regional_summary():
    locations = [
        {"location": "United States", "position": 3},
        {"location": "India", "position": 12},
        {"location": "United Kingdom", "position": 7},
        {"location": "Canada", "position": None},
    ]

    analysis = summarize_regional_rankings("running shoes", locations)["analysis"]

    assert analysis["avg_position"] == 7
    assert analysis["best_location"] == "United States"
    assert analysis["worst_position"] == 12
    assert analysis["ranking_in"] == 3
    assert analysis["not_ranking_in"] == 1
    assert analysis["regional_variance"] == 9


def test_regional_variance_needs_two_rankings():
    analysis = summarize_regional_rankings("x", [{"location": "India", "position": 4}])["analysis"]
    assert analysis["regional_variance"] == 0

    empty = summarize_regional_rankings("x", [])["analysis"]
    assert empty["avg_position"] is None
    assert empty["best_location"] is None


def test_device_gap_on_mobile():
    comparison = compare_device_positions("running shoes", "United States",
                                          {"my_position": 5}, {"my_position": 12})

    assert comparison["difference"] == 7
    assert comparison["analysis"] == "Ranking 7 positions lower on mobile"
    assert comparison["recommendation"] == "Significant mobile ranking gap - prioritize mobile optimization"


@pytest.mark.parametrize("desktop,mobile,analysis,recommendation", [
    (12, 3, "Ranking 9 positions higher on mobile", "Mobile performing better - leverage mobile-first indexing"),
    (4, None, "Ranking on desktop only - mobile optimization needed",
     "Missing from mobile results - prioritize mobile optimization"),
    (None, 12, "Ranking on mobile only - unusual pattern", "Missing from desktop results - review desktop page experience"),
    (None, None, "Not ranking on either device", "Not ranking yet - no device gap to act on"),
    (6, 6, "Same position on both devices", "Rankings consistent across devices"),
])
def test_device_comparison_cases(desktop, mobile, analysis, recommendation):
    comparison = compare_device_positions("k", "India", {"my_position": desktop}, {"my_position": mobile})
    assert comparison["analysis"] == analysis
    assert comparison["recommendation"] == recommendation


def test_competitor_gap(make_serp):
    serps = [
        make_serp(keyword="running shoes", domains=("a.com", "example.com", "b.com")),
        make_serp(keyword="trail shoes", domains=("a.com", "wikipedia.org", "c.com")),
    ]

    gap = analyze_competitor_gap(serps, "example.com")

    assert gap["my_keywords_count"] == 1
    assert gap["missed_opportunities"] == 1
    assert gap["missed_keywords"] == [{"keyword": "trail shoes", "difficulty": "Easy", "top_competitor": "a.com"}]
    assert gap["top_competitors"][0]["domain"] == "a.com"
    assert gap["top_competitors"][0]["appearances"] == 2
    assert gap["top_competitors"][0]["avg_position"] == 1
    assert "example.com" not in [competitor["domain"] for competitor in gap["top_competitors"]]

    split = split_competitors(gap)
    assert [competitor["domain"] for competitor in split["content"]] == ["wikipedia.org"]
    assert {competitor["domain"] for competitor in split["direct"]} == {"a.com", "b.com", "c.com"}


def test_keyword_set_merges_page_and_seed_keywords():
    keywords = build_keyword_set(["running shoes", "trail shoes"], ["Trail Shoes ", "hiking boots", ""], "example.com")
    assert keywords == ["running shoes", "trail shoes", "hiking boots"]


def test_keyword_set_brand_fallback():
    keywords = build_keyword_set([], None, "https://www.example.com/")
    assert keywords == ["example products", "example services", "best example", "example online", "buy example"]


def test_keyword_set_limits():
    page = [f"keyword {index}" for index in range(30)]
    assert len(build_keyword_set(page, None, "example.com")) == 20
    assert build_keyword_set(page, ["seed"], "example.com", limit=3) == ["keyword 0", "keyword 1", "keyword 2"]


def test_keyword_clusters_group_on_shared_term():
    signals = [
        KeywordSignal(keyword="running shoes", difficulty=20, quick_win_score=75, position=3),
        KeywordSignal(keyword="trail running", difficulty=40, quick_win_score=40),
        KeywordSignal(keyword="hiking boots", difficulty=60, quick_win_score=10, intent="Transactional"),
    ]

    clusters = build_keyword_clusters(signals)

    assert clusters[0]["name"] == "running"
    assert clusters[0]["keywords"] == ["running shoes", "trail running"]
    assert clusters[0]["avg_difficulty"] == 30
    assert clusters[0]["ranking_keywords"] == 1
    assert clusters[0]["priority"] == "High"
    assert clusters[0]["action"] == "Strengthen the pages already ranking for this topic"

    assert clusters[1]["name"] == "hiking boots"
    assert clusters[1]["dominant_intent"] == "Transactional"
    assert clusters[1]["priority"] == "Low"


def test_suggestions_from_related_searches_and_questions(make_serp):
    serp = make_serp(
        related_searches=[{"query": "Cheap running shoes"}, {"query": "running shoes"}],
        related_questions=[{"question": "How to choose running shoes for flat feet?"},
                           {"question": "What is cushioning?"}],
    )

    suggestions = suggest_keywords([serp], ["running shoes"], "example.com")
    by_category = {entry["category"]: [keyword["word"] for keyword in entry["keywords"]] for entry in suggestions}

    assert [entry["category"] for entry in suggestions] == ["Transactional", "Informational", "Long-Tail"]
    assert by_category["Transactional"] == ["cheap running shoes"]
    assert by_category["Informational"] == ["what is cushioning"]
    assert by_category["Long-Tail"] == ["how to choose running shoes for flat feet"]


def test_suggestions_fall_back_to_brand_templates(make_serp):
    suggestions = suggest_keywords([make_serp()], [], "example.com")
    assert suggestions[0]["category"] == "Transactional"
    assert suggestions[0]["keywords"][0]["word"] == "buy example products online"


def test_collect_without_provider_uses_fallbacks():
    report = asyncio.run(KeywordIntelligence(SerpApiClient()).analyze("example.com", ["running shoes"]))

    assert report.serp_results == []
    assert report.visibility_percentage == 0
    assert report.competitor_gap is None
    assert [entry["category"] for entry in report.suggested_keywords] == ["Transactional", "Informational", "Long-Tail"]



def test_failed_lookups_still_get_fallback_suggestions(monkeypatch):
    monkeypatch.setenv("SERPAPI_KEY", "serp-key")

    async def fake_request(self, params):
        return None

    monkeypatch.setattr(SerpApiClient, "_request", fake_request)

    report = asyncio.run(KeywordIntelligence(SerpApiClient()).analyze("example.com", ["running shoes"]))

    assert report.serp_results == []
    assert report.device_comparison is None
    assert [entry["category"] for entry in report.suggested_keywords] == ["Transactional", "Informational", "Long-Tail"]

def test_lead_keyword_prefers_best_rank():
    report = KeywordIntelligenceReport(
        serp_results=[{"keyword": "a"}, {"keyword": "b"}],
        sampled_positions=[{"keyword": "a", "position": 8}, {"keyword": "b", "position": 2}],
    )
    assert KeywordIntelligence.lead_keyword(report) == "b"
    assert KeywordIntelligence.lead_keyword(KeywordIntelligenceReport(serp_results=[{"keyword": "c"}])) == "c"
    assert KeywordIntelligence.lead_keyword(KeywordIntelligenceReport()) is None


def test_full_analysis(monkeypatch, serp_payload):
    monkeypatch.setenv("SERPAPI_KEY", "serp-key")
    calls = []

    async def fake_request(self, params):
        calls.append((params["q"], params["location"], params["device"]))
        if params["q"] == "trail shoes":
            return serp_payload(related_searches=[{"query": "trail shoes sale"}])
        if params["device"] == "mobile":
            return serp_payload(domains=ranked_at(9))
        positions = {"United States": 2, "India": 5}
        if params["location"] in positions:
            return serp_payload(domains=ranked_at(positions[params["location"]]))
        return serp_payload()

    monkeypatch.setattr(SerpApiClient, "_request", fake_request)

    report = asyncio.run(KeywordIntelligence(SerpApiClient()).analyze("example.com", ["running shoes", "trail shoes"]))

    assert report.keywords_checked == ["running shoes", "trail shoes"]
    assert report.sampled_positions == [{"keyword": "running shoes", "position": 2}]
    assert report.visibility_percentage == 50
    assert report.competitor_gap["missed_opportunities"] == 1

    regional = report.regional_analysis["analysis"]
    assert regional["ranking_in"] == 2
    assert regional["not_ranking_in"] == 1
    assert regional["best_location"] == "United States"
    assert regional["regional_variance"] == 3

    assert report.device_comparison["difference"] == 7
    assert report.device_comparison["analysis"] == "Ranking 7 positions lower on mobile"

    assert report.suggested_keywords[0]["keywords"][0]["word"] == "trail shoes sale"
    assert len(calls) == 2 + 3 + 2
    assert calls[-2:] == [("running shoes", "United States", "desktop"), ("running shoes", "United States", "mobile")]


def test_own_listing_feeds_ctr_analysis(monkeypatch, serp_payload):
    monkeypatch.setenv("SERPAPI_KEY", "serp-key")

    async def fake_request(self, params):
        payload = serp_payload(domains=ranked_at(1))
        payload["organic_results"][0] = organic("example.com", title="Example running shoes")
        return payload

    monkeypatch.setattr(SerpApiClient, "_request", fake_request)

    report = asyncio.run(KeywordIntelligence(SerpApiClient()).collect("example.com", ["running shoes"]))

    assert report.ctr_analysis[0]["my_title"]["text"] == "Example running shoes"
    assert report.quick_wins[0]["keyword"] == "running shoes"
    assert report.quick_wins[0]["position"] == 1
