"""Turns the raw probe outputs of a scan into a ScanResult.

Four sub-scores of up to 25 points each make up the health score:
technical (HTTPS/robots/sitemap), on-page SEO (Lighthouse SEO category),
authority (registration age + knowledge graph) and performance (PageSpeed).
A probe that returned nothing contributes zero; nothing here raises on
missing data.
"""
import logging
from typing import Dict, Any, List, Optional

from keyword_intelligence import KeywordIntelligenceReport
from models import ScanResult, ScoreBreakdown, SUB_SCORE_MAX
from seo_probes.knowledge_graph import entity_verification
from seo_probes.natural_language import content_salience
from seo_probes.pagespeed_checker import (
    calculate_on_page_seo_score,
    calculate_performance_score,
    extract_technical_issues,
    get_lighthouse_metrics,
    summarize_insights,
)

logger = logging.getLogger('seo_health')

AUTHORITY_BASE_POINTS = 10
ENTITY_SCORE_POINTS = ((10000, 10), (5000, 8), (1000, 6), (500, 4))
ENTITY_MIN_POINTS = 2
DOMAIN_AGE_POINTS = ((20, 5), (10, 3), (5, 2), (2, 1))

VISIBILITY_LABELS = ((70, 'Strong'), (40, 'Moderate'))

MAX_ACTION_ITEMS = 10


def _first_at_least(value, table, default=0):
    for threshold, points in table:
        if value >= threshold:
            return points
    return default


def _first_above(value, table, default=0):
    for threshold, points in table:
        if value > threshold:
            return points
    return default


def calculate_authority_score(domain_age: Optional[Dict[str, Any]],
                              entity: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """Authority from registration age and knowledge-graph recognition.

    The base points are only awarded once either source confirms the domain;
    with neither, authority is zero.
    """
    age_years = (domain_age or {}).get('age_years')
    registered = bool(domain_age) and any(
        domain_age.get(name) for name in ('creation_date', 'expiry_date', 'registrar')
    )
    recognized = bool(entity and entity.get('recognized'))

    if not registered and not recognized:
        return {
            'score': 0,
            'max_score': SUB_SCORE_MAX,
            'details': {'error': 'No registry or knowledge graph data'},
        }

    score = AUTHORITY_BASE_POINTS
    details = {'base': AUTHORITY_BASE_POINTS}

    if recognized:
        entity_points = _first_above(entity.get('score') or 0, ENTITY_SCORE_POINTS, ENTITY_MIN_POINTS)
        score += entity_points
        details['entity_points'] = entity_points
        details['entity_name'] = entity.get('name')

    if age_years is not None:
        age_points = _first_at_least(age_years, DOMAIN_AGE_POINTS)
        score += age_points
        details['age_points'] = age_points
        details['age_years'] = age_years

    return {'score': min(SUB_SCORE_MAX, score), 'max_score': SUB_SCORE_MAX, 'details': details}


def visibility_label(percentage: int) -> str:
    return _first_at_least(percentage, VISIBILITY_LABELS, 'Weak')


def generate_action_plan(health_score: int, technical: Optional[Dict[str, Any]] = None,
                         technical_issues: Optional[List[Dict[str, Any]]] = None,
                         quick_wins: Optional[List[Dict[str, Any]]] = None) -> List[Dict[str, Any]]:
    """Prioritised tasks: baseline plan for the score band, then concrete fixes."""
    plan = []
    if health_score < 70:
        plan.append({'task': 'Improve Technical SEO', 'impact': 'High', 'effort': 'Medium',
                     'timeline': '2 weeks'})
    if health_score < 80:
        plan.append({'task': 'Optimize On-Page SEO', 'impact': 'High', 'effort': 'Low',
                     'timeline': '1 week'})

    for check in ((technical or {}).get('checks') or {}).values():
        if not check.get('passed'):
            plan.append({'task': f"Fix: {check['name']}", 'impact': 'High', 'effort': 'Low',
                         'timeline': '1 week'})

    for issue in (technical_issues or [])[:3]:
        if issue.get('severity') in ('Critical', 'High'):
            plan.append({'task': issue['issue'], 'impact': issue['severity'], 'effort': 'Medium',
                         'timeline': '2 weeks', 'detail': issue.get('fix')})

    for quick_win in (quick_wins or [])[:3]:
        plan.append({'task': f"Target quick win: {quick_win['keyword']}", 'impact': 'Medium',
                     'effort': 'Low', 'timeline': '2 weeks', 'detail': quick_win.get('recommendation')})

    plan.append({'task': 'Create Content Strategy', 'impact': 'High', 'effort': 'High',
                 'timeline': '4 weeks'})
    plan.append({'task': 'Build Quality Backlinks', 'impact': 'Medium', 'effort': 'High',
                 'timeline': '8 weeks'})

    plan = plan[:MAX_ACTION_ITEMS]
    for priority, item in enumerate(plan, start=1):
        item['priority'] = priority
        item['summary'] = f"Priority {priority} • {item['impact']} • {item['effort']} • {item['timeline']}"
    return plan


def technical_details(technical: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    checks = (technical or {}).get('checks') or {}

    def passed(name):
        return bool((checks.get(name) or {}).get('passed'))

    return {
        'https': passed('https'),
        'robots_txt': passed('robots_txt'),
        'sitemap': passed('sitemap'),
        'score': (technical or {}).get('score', 0),
        'max_score': (technical or {}).get('max_score', SUB_SCORE_MAX),
    }


def pagespeed_summary(insights: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    if not insights:
        return None
    return {
        'performance': insights.get('performance'),
        'accessibility': insights.get('accessibility'),
        'seo': insights.get('seo'),
        'mobile_optimized': bool(insights.get('mobile_optimized')),
        'lcp': insights.get('lcp_seconds'),
        'strategy': insights.get('strategy'),
    }


def format_domain_age(domain_age: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    domain_age = domain_age or {}
    return {
        'years': domain_age.get('age_years'),
        'created': domain_age.get('creation_date'),
        'expires': domain_age.get('expiry_date'),
        'registrar': domain_age.get('registrar'),
    }


def aggregate_scan_result(domain: str,
                          technical: Optional[Dict[str, Any]] = None,
                          insights: Optional[Dict[str, Any]] = None,
                          domain_age: Optional[Dict[str, Any]] = None,
                          entity: Optional[Dict[str, Any]] = None,
                          entities: Optional[List[Dict[str, Any]]] = None,
                          sentiment: Optional[Dict[str, Any]] = None,
                          observed_keywords: Optional[List[str]] = None,
                          intelligence: Optional[KeywordIntelligenceReport] = None,
                          search_volumes: Optional[List[Dict[str, Any]]] = None) -> ScanResult:
    intelligence = intelligence or KeywordIntelligenceReport()
    verification = entity if entity and 'recognized' in entity else entity_verification(entity)

    breakdown = ScoreBreakdown(
        technical=(technical or {}).get('score', 0),
        on_page_seo=calculate_on_page_seo_score(insights)['score'],
        authority=calculate_authority_score(domain_age, verification)['score'],
        performance=calculate_performance_score(insights)['score'],
    )
    logger.info(f"Score breakdown for {domain}: {breakdown.to_dict()} = {breakdown.total}")

    issues = extract_technical_issues(insights)
    visibility = intelligence.visibility_percentage

    return ScanResult(
        domain=domain,
        score_breakdown=breakdown,
        domain_age=format_domain_age(domain_age),
        observed_keywords=list(observed_keywords or []),
        sampled_positions=intelligence.sampled_positions,
        serp_competitors=intelligence.serp_competitors,
        suggested_keywords=intelligence.suggested_keywords,
        lighthouse_metrics=get_lighthouse_metrics(insights),
        entity_verification=verification,
        content_salience=content_salience(entities),
        content_sentiment=sentiment,
        keyword_signals=[signal.to_dict() for signal in intelligence.signals],
        quick_wins=intelligence.quick_wins,
        high_opportunity_keywords=intelligence.high_opportunity_keywords,
        ctr_analysis=intelligence.ctr_analysis,
        competitor_gap=intelligence.competitor_gap,
        regional_analysis=intelligence.regional_analysis,
        device_comparison=intelligence.device_comparison,
        keyword_clusters=intelligence.keyword_clusters,
        search_volumes={entry['keyword']: entry for entry in search_volumes or [] if entry.get('keyword')},
        action_items=generate_action_plan(breakdown.total, technical, issues, intelligence.quick_wins),
        technical_details=technical_details(technical),
        technical_issues=issues,
        pagespeed=pagespeed_summary(summarize_insights(insights)),
        visibility_percentage=visibility,
        visibility_label=visibility_label(visibility),
    )
