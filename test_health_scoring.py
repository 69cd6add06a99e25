import pytest

from conftest import lighthouse_payload
from health_scoring import (
    aggregate_scan_result,
    calculate_authority_score,
    generate_action_plan,
    visibility_label,
)
from keyword_intelligence import KeywordIntelligenceReport
from models import ScoreBreakdown
from seo_probes.pagespeed_checker import parse_insights


def technical_result(https=True, robots=True, sitemap=True):
    checks = {
        "https": {"passed": https, "points": 10 if https else 0, "name": "HTTPS Enabled"},
        "robots_txt": {"passed": robots, "points": 7 if robots else 0, "name": "robots.txt Present"},
        "sitemap": {"passed": sitemap, "points": 8 if sitemap else 0, "name": "Sitemap Available"},
    }
    return {"score": sum(check["points"] for check in checks.values()), "max_score": 25, "checks": checks}


REGISTRY_RECORD = {
    "creation_date": "1995-08-14T04:00:00Z",
    "expiry_date": "2030-08-13T04:00:00Z",
    "registrar": "Example Registrar",
    "age_years": 28,
}


def test_authority_without_any_source_is_zero():
    authority = calculate_authority_score(None, {"recognized": False})
    assert authority["score"] == 0
    assert authority["details"] == {"error": "No registry or knowledge graph data"}


def test_authority_from_recognized_entity_only():
    authority = calculate_authority_score(None, {"recognized": True, "score": 6200.5, "name": "Example"})
    assert authority["score"] == 10 + 8
    assert authority["details"]["entity_name"] == "Example"


@pytest.mark.parametrize("entity_score,points", [(10001, 10), (10000, 8), (5001, 8), (1001, 6), (501, 4), (100, 2)])
def test_entity_points(entity_score, points):
    authority = calculate_authority_score(None, {"recognized": True, "score": entity_score})
    assert authority["details"]["entity_points"] == points


@pytest.mark.parametrize("age,points", [(20, 5), (19, 3), (10, 3), (5, 2), (2, 1), (1, 0)])
def test_age_points(age, points):
    record = dict(REGISTRY_RECORD, age_years=age)
    assert calculate_authority_score(record, None)["score"] == 10 + points


def test_authority_is_capped():
    authority = calculate_authority_score(REGISTRY_RECORD, {"recognized": True, "score": 25_000})
    # 10 + 10 + 5
    assert authority["score"] == 25


def test_registry_without_age_still_earns_base():
    record = {"creation_date": None, "expiry_date": None, "registrar": "Registrar", "age_years": None}
    assert calculate_authority_score(record, None)["score"] == 10


@pytest.mark.parametrize("percentage,label", [(100, "Strong"), (70, "Strong"), (69, "Moderate"),
                                              (40, "Moderate"), (39, "Weak"), (0, "Weak")])
def test_visibility_label(percentage, label):
    assert visibility_label(percentage) == label


def test_action_plan_for_struggling_site():
    issues = [
        {"severity": "High", "issue": "Missing meta description", "fix": "Add one"},
        {"severity": "Medium", "issue": "Large DOM: 2200 elements", "fix": "Trim it"},
    ]
    quick_wins = [{"keyword": "trail shoes", "recommendation": "Go for it"}, {"keyword": "hiking boots"}]

    plan = generate_action_plan(50, technical_result(sitemap=False), issues, quick_wins)

    assert [item["task"] for item in plan] == [
        "Improve Technical SEO",
        "Optimize On-Page SEO",
        "Fix: Sitemap Available",
        "Missing meta description",
        "Target quick win: trail shoes",
        "Target quick win: hiking boots",
        "Create Content Strategy",
        "Build Quality Backlinks",
    ]
    assert [item["priority"] for item in plan] == list(range(1, 9))
    assert plan[0]["summary"] == "Priority 1 • High • Medium • 2 weeks"
    assert plan[3]["detail"] == "Add one"


def test_action_plan_for_healthy_site():
    plan = generate_action_plan(90, technical_result())
    assert [item["task"] for item in plan] == ["Create Content Strategy", "Build Quality Backlinks"]


def test_action_plan_is_capped_at_ten():
    issues = [{"severity": "Critical", "issue": f"Issue {index}"} for index in range(5)]
    quick_wins = [{"keyword": f"keyword {index}"} for index in range(5)]

    plan = generate_action_plan(10, technical_result(False, False, False), issues, quick_wins)

    assert len(plan) == 10
    assert plan[-1]["priority"] == 10
    assert plan[-1]["task"] == "Target quick win: keyword 1"


def test_breakdown_clamps_each_sub_score():
    breakdown = ScoreBreakdown(technical=40, on_page_seo=-3, authority=None, performance=25)
    assert breakdown.to_dict() == {"technical": 25, "on_page_seo": 0, "authority": 0, "performance": 25}
    assert breakdown.total == 50


def test_aggregate_full_result():
    insights = parse_insights(lighthouse_payload(), "mobile")
    entity = {"recognized": True, "name": "Example Corp", "score": 6200.5}

    result = aggregate_scan_result(
        "example.com",
        technical=technical_result(),
        insights=insights,
        domain_age=REGISTRY_RECORD,
        entity=entity,
        entities=[{"name": "Running shoes", "type": "CONSUMER_GOOD", "salience": 0.4}],
        sentiment={"score": 0.2, "magnitude": 0.9},
        observed_keywords=["running shoes"],
        search_volumes=[{"keyword": "running shoes", "avg_monthly_searches": 90500}],
    )

    breakdown = result.score_breakdown
    assert breakdown.technical == 25
    assert breakdown.on_page_seo == 23
    assert breakdown.performance == 23
    assert breakdown.authority == 10 + 8 + 5
    assert result.health_score == breakdown.technical + breakdown.on_page_seo + breakdown.authority + breakdown.performance

    data = result.to_dict()
    assert data["health_score"] == 94
    assert data["domain_age"]["years"] == 28
    assert data["entity_verification"]["name"] == "Example Corp"
    assert data["content_salience"] == [{"entity": "Running shoes", "type": "CONSUMER_GOOD", "weight": 0.4}]
    assert data["content_sentiment"] == {"score": 0.2, "magnitude": 0.9}
    assert data["search_volumes"]["running shoes"]["avg_monthly_searches"] == 90500
    assert data["technical_details"] == {"https": True, "robots_txt": True, "sitemap": True,
                                         "score": 25, "max_score": 25}
    assert data["pagespeed"]["strategy"] == "mobile"
    assert data["visibility_label"] == "Weak"


def test_aggregate_with_nothing_collected():
    result = aggregate_scan_result("example.com")

    assert result.health_score == 0
    assert result.entity_verification == {"recognized": False}
    assert result.lighthouse_metrics is None
    assert result.pagespeed is None
    assert result.technical_issues == []
    assert [item["task"] for item in result.action_items][:2] == ["Improve Technical SEO", "Optimize On-Page SEO"]


def test_raw_knowledge_graph_entity_is_verified():
    result = aggregate_scan_result("example.com", entity={"name": "Example Corp", "score": 700})
    assert result.entity_verification["recognized"] is True
    assert result.score_breakdown.authority == 10 + 4


def test_visibility_comes_from_keyword_report():
    report = KeywordIntelligenceReport(
        serp_results=[{"keyword": "a", "my_position": 3}, {"keyword": "b", "my_position": None},
                      {"keyword": "c", "my_position": 8}],
        sampled_positions=[{"keyword": "a", "position": 3}, {"keyword": "c", "position": 8}],
    )

    result = aggregate_scan_result("example.com", intelligence=report)

    assert result.visibility_percentage == 67
    assert result.visibility_label == "Moderate"
    assert result.sampled_positions == report.sampled_positions
