"""PageSpeed Insights client and the performance / on-page scores derived from it.

Lighthouse categories come back as 0..1 floats; everything here works on the
0..100 integers the UI shows.
"""
import asyncio
from typing import Dict, Any, List, Optional

import aiohttp

from models import round_half_up
from scan_config import get_pagespeed_key
from seo_probes.base import BaseProbe
from seo_probes.fallback import first_successful

PAGESPEED_API = 'https://www.googleapis.com/pagespeedonline/v5/runPagespeed'
PAGESPEED_TIMEOUT = 90
STRATEGIES = ('mobile', 'desktop')
CATEGORIES = ('performance', 'accessibility', 'seo')

MAX_SCORE = 25
PERFORMANCE_POINTS_CAP = 12
PERFORMANCE_DIVISOR = 8.5
MOBILE_OPTIMIZED_POINTS = 5
MOBILE_FALLBACK_POINTS = 2

# (threshold, points) pairs, first threshold the metric is under wins
LCP_POINTS = ((2500, 3), (4000, 1))
CLS_POINTS = ((0.1, 3), (0.25, 1))
FCP_POINTS = ((1800, 2), (3000, 1))

SEVERITY_ORDER = {'Critical': 0, 'High': 1, 'Medium': 2, 'Low': 3}


class PageSpeedChecker(BaseProbe):
    """Fetches Lighthouse data, mobile first with desktop as the fallback."""

    def __init__(self, session: Optional[aiohttp.ClientSession] = None, timeout: float = PAGESPEED_TIMEOUT):
        super().__init__(session=session, timeout=timeout)

    async def get_insights(self, url: str) -> Optional[Dict[str, Any]]:
        self.logger.info(f"Fetching PageSpeed Insights for {url}")
        strategies = [(strategy, self._strategy_call(url, strategy)) for strategy in STRATEGIES]
        insights = await first_successful(strategies, label=f"PageSpeed {url}")
        if insights:
            self.logger.info(
                f"PageSpeed scores - Performance: {insights['performance']}, "
                f"SEO: {insights['seo']}, Accessibility: {insights['accessibility']}"
            )
        return insights

    def _strategy_call(self, url: str, strategy: str):
        async def call():
            payload = await self._fetch(url, strategy)
            return parse_insights(payload, strategy) if payload else None
        return call

    async def _fetch(self, url: str, strategy: str) -> Optional[Dict[str, Any]]:
        session = await self._ensure_session()
        params = [('url', url), ('strategy', strategy)]
        params.extend(('category', category) for category in CATEGORIES)
        api_key = get_pagespeed_key()
        if api_key:
            params.append(('key', api_key))
        try:
            async with session.get(PAGESPEED_API, params=params,
                                   timeout=self.client_timeout(self.timeout)) as response:
                if response.status != 200:
                    self.logger.warning(f"PageSpeed ({strategy}) returned HTTP {response.status}")
                    return None
                return await response.json()
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            self.logger.warning(f"PageSpeed attempt ({strategy}) failed: {e}")
            return None


def parse_insights(payload: Dict[str, Any], strategy: str) -> Optional[Dict[str, Any]]:
    lighthouse = payload.get('lighthouseResult')
    if not lighthouse:
        return None
    categories = lighthouse.get('categories') or {}
    audits = lighthouse.get('audits') or {}

    def category_score(name):
        score = (categories.get(name) or {}).get('score')
        return round_half_up(score * 100) if score is not None else None

    def numeric(audit_id):
        return (audits.get(audit_id) or {}).get('numericValue')

    def display(audit_id):
        return (audits.get(audit_id) or {}).get('displayValue') or 'N/A'

    return {
        'performance': category_score('performance'),
        'accessibility': category_score('accessibility'),
        'seo': category_score('seo'),
        'lcp': numeric('largest-contentful-paint'),
        'fid': numeric('max-potential-fid'),
        'cls': numeric('cumulative-layout-shift'),
        'fcp': numeric('first-contentful-paint'),
        'lcp_seconds': display('largest-contentful-paint'),
        'fcp_seconds': display('first-contentful-paint'),
        'mobile_optimized': (audits.get('viewport') or {}).get('score') == 1,
        'strategy': strategy,
        'url': payload.get('id'),
        'audits': audits,
    }


def _threshold_points(value, table) -> int:
    if value is None:
        return 0
    for threshold, points in table:
        if value < threshold:
            return points
    return 0


def calculate_performance_score(insights: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    if not insights or insights.get('performance') is None:
        return {
            'score': 0,
            'max_score': MAX_SCORE,
            'percentage': 0,
            'details': {'error': 'PageSpeed data unavailable'},
        }

    performance = insights['performance']
    score = min(PERFORMANCE_POINTS_CAP, round_half_up(performance / PERFORMANCE_DIVISOR))

    if insights.get('mobile_optimized'):
        score += MOBILE_OPTIMIZED_POINTS
    elif performance > 50:
        score += MOBILE_FALLBACK_POINTS

    score += _threshold_points(insights.get('lcp'), LCP_POINTS)
    score += _threshold_points(insights.get('cls'), CLS_POINTS)
    score += _threshold_points(insights.get('fcp'), FCP_POINTS)
    score = min(MAX_SCORE, score)

    return {
        'score': score,
        'max_score': MAX_SCORE,
        'percentage': round_half_up(score / MAX_SCORE * 100),
        'details': {
            'raw_performance': performance,
            'mobile': 'Optimized' if insights.get('mobile_optimized') else 'Needs work',
            'lcp': insights.get('lcp_seconds', 'N/A'),
            'fcp': insights.get('fcp_seconds', 'N/A'),
        },
    }


def calculate_on_page_seo_score(insights: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    if not insights or insights.get('seo') is None:
        return {
            'score': 0,
            'max_score': MAX_SCORE,
            'percentage': 0,
            'details': {'error': 'Lighthouse SEO data unavailable'},
        }

    seo = insights['seo']
    return {
        'score': min(MAX_SCORE, round_half_up(seo / 4)),
        'max_score': MAX_SCORE,
        'percentage': seo,
        'details': {
            'lighthouse_seo': seo,
            'accessibility': insights.get('accessibility'),
        },
    }


def _score_label(score: int) -> str:
    if score >= 90:
        return 'Good'
    if score >= 50:
        return 'Needs Improvement'
    return 'Poor'


def _score_color(score: int) -> str:
    if score >= 90:
        return 'green'
    if score >= 50:
        return 'orange'
    return 'red'


def get_lighthouse_metrics(insights: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """Lighthouse numbers formatted for display, None without data."""
    if not insights:
        return None

    metrics = {}
    for category in CATEGORIES:
        score = insights.get(category) or 0
        metrics[category] = {'score': score, 'label': _score_label(score), 'color': _score_color(score)}

    cls = insights.get('cls')
    metrics['core_web_vitals'] = {
        'lcp': insights.get('lcp_seconds', 'N/A'),
        'fcp': insights.get('fcp_seconds', 'N/A'),
        'cls': f"{cls:.3f}" if cls is not None else 'N/A',
    }
    metrics['mobile_optimized'] = bool(insights.get('mobile_optimized'))
    return metrics


def _failing(audits: Dict[str, Any], audit_id: str) -> Optional[Dict[str, Any]]:
    audit = audits.get(audit_id)
    if audit and audit.get('score') is not None and audit['score'] < 1:
        return audit
    return None


def extract_technical_issues(insights: Optional[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Concrete, fixable problems from the Lighthouse audits, most severe first."""
    if not insights or not insights.get('audits'):
        return []

    audits = insights['audits']
    issues = []

    audit = _failing(audits, 'uses-optimized-images')
    if audit:
        details = audit.get('details') or {}
        items = details.get('items') or []
        if items:
            issues.append({
                'category': 'Images',
                'severity': 'High',
                'issue': f"{len(items)} unoptimized images",
                'impact': f"Could save {round_half_up((details.get('overallSavingsBytes') or 0) / 1024)}KB",
                'fix': 'Convert images to WebP format and compress',
                'metric': 'LCP',
                'data': [{'url': item.get('url'), 'wasted_bytes': item.get('wastedBytes')} for item in items[:3]],
            })

    audit = _failing(audits, 'render-blocking-resources')
    if audit:
        details = audit.get('details') or {}
        items = details.get('items') or []
        if items:
            issues.append({
                'category': 'JavaScript/CSS',
                'severity': 'High',
                'issue': f"{len(items)} render-blocking resources",
                'impact': f"Blocking render for {round_half_up(details.get('overallSavingsMs') or 0)}ms",
                'fix': 'Defer non-critical CSS/JS or inline critical resources',
                'metric': 'FCP',
                'data': [{'url': item.get('url'), 'wasted_ms': item.get('wastedMs')} for item in items[:3]],
            })

    audit = _failing(audits, 'unused-css-rules')
    if audit:
        details = audit.get('details') or {}
        savings = details.get('overallSavingsBytes') or 0
        if savings > 10000:
            issues.append({
                'category': 'CSS',
                'severity': 'Medium',
                'issue': f"{round_half_up(savings / 1024)}KB unused CSS",
                'impact': f"Remove {len(details.get('items') or [])} unused stylesheets",
                'fix': 'Remove unused CSS rules',
                'metric': 'FCP',
            })

    lcp_items = ((audits.get('largest-contentful-paint-element') or {}).get('details') or {}).get('items') or []
    if lcp_items:
        node = lcp_items[0].get('node') or {}
        issues.append({
            'category': 'LCP Element',
            'severity': 'Critical',
            'issue': f"LCP element: {node.get('snippet') or 'Unknown'}",
            'impact': f"Takes {round_half_up(node.get('lcp') or 0)}ms to load",
            'fix': 'Optimize this specific element (preload, compress, or lazy-load)',
            'metric': 'LCP',
            'data': {'element': node.get('nodeLabel'), 'type': node.get('type')},
        })

    audit = _failing(audits, 'image-alt')
    if audit:
        count = len((audit.get('details') or {}).get('items') or [])
        if count:
            issues.append({
                'category': 'SEO',
                'severity': 'Medium',
                'issue': f"{count} images missing alt text",
                'impact': 'Hurts accessibility and SEO',
                'fix': 'Add descriptive alt text to all images',
                'metric': 'SEO Score',
            })

    if _failing(audits, 'meta-description'):
        issues.append({
            'category': 'SEO',
            'severity': 'High',
            'issue': 'Missing or poor meta description',
            'impact': 'Lower click-through rate from search results',
            'fix': 'Add unique, compelling meta description (150-160 chars)',
            'metric': 'SEO Score',
        })

    if _failing(audits, 'viewport'):
        issues.append({
            'category': 'Mobile',
            'severity': 'Critical',
            'issue': 'Not mobile-friendly',
            'impact': 'Poor mobile user experience, lower mobile rankings',
            'fix': 'Add viewport meta tag: <meta name="viewport" content="width=device-width, initial-scale=1">',
            'metric': 'Mobile Score',
        })

    ttfb = (audits.get('server-response-time') or {}).get('numericValue')
    if ttfb is not None and ttfb > 600:
        issues.append({
            'category': 'Server',
            'severity': 'High',
            'issue': f"Slow server response: {round_half_up(ttfb)}ms",
            'impact': 'Delays all page loading',
            'fix': 'Upgrade hosting, enable caching, or use a CDN',
            'metric': 'TTFB',
        })

    dom_size = (audits.get('dom-size') or {}).get('numericValue')
    if dom_size is not None and dom_size > 1500:
        issues.append({
            'category': 'DOM',
            'severity': 'Medium',
            'issue': f"Large DOM: {int(dom_size)} elements",
            'impact': 'Slower rendering and JavaScript execution',
            'fix': 'Reduce DOM complexity, lazy-load content',
            'metric': 'Performance',
        })

    if _failing(audits, 'structured-data'):
        issues.append({
            'category': 'SEO',
            'severity': 'Low',
            'issue': 'No structured data (Schema.org)',
            'impact': 'Missing rich snippets in search results',
            'fix': 'Add JSON-LD structured data for products/organization',
            'metric': 'SEO Score',
        })

    issues.sort(key=lambda issue: SEVERITY_ORDER[issue['severity']])
    return issues


def summarize_insights(insights: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """Insights without the raw audits, for storing with the scan."""
    if not insights:
        return None
    return {key: value for key, value in insights.items() if key != 'audits'}
