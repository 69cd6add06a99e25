"""Keyword intelligence for a scanned domain.

Runs the SERP lookups for a keyword set, scores every keyword and derives the
cross-keyword views: competitor gap, regional spread, mobile vs desktop,
clusters and suggested keywords.
"""
import re
import logging
from collections import Counter, OrderedDict
from dataclasses import dataclass, field
from typing import Dict, Any, List, Optional

from domain_utils import brand_name
from keyword_extractor import STOP_WORDS
from keyword_scoring import (
    analyze_ctr_potential,
    analyze_serp_features,
    build_keyword_signal,
    calculate_keyword_difficulty,
    calculate_quick_win_score,
    classify_query_intent,
)
from models import KeywordSignal, round_half_up
from scan_config import get_max_serp_keywords, get_regional_locations, get_serp_location
from seo_probes.serp_api import SerpApiClient, matches_domain

logger = logging.getLogger('seo_health')

PAGE_KEYWORD_LIMIT = 15
SEED_KEYWORD_LIMIT = 5
QUICK_WIN_THRESHOLD = 50
HIGH_OPPORTUNITY_THRESHOLD = 60
MAX_LISTED_KEYWORDS = 10
MAX_COMPETITORS = 10
MAX_SUGGESTIONS_PER_CATEGORY = 5
LONG_TAIL_WORDS = 4

# Platforms that rank for almost anything; they compete for attention, not for the business
GENERIC_PLATFORMS = (
    'wikipedia.org', 'youtube.com', 'facebook.com', 'instagram.com', 'twitter.com',
    'linkedin.com', 'reddit.com', 'pinterest.com', 'tiktok.com', 'amazon.com',
    'ebay.com', 'walmart.com', 'indeed.com', 'glassdoor.com', 'cnn.com', 'bbc.com',
    'nytimes.com', 'forbes.com', 'merriam-webster.com', 'dictionary.com',
    'apps.apple.com', 'play.google.com', 'cambridge.org', 'thesaurus.com',
    'vocabulary.com', 'collinsdictionary.com',
)


def build_keyword_set(page_keywords: List[str], seed_keywords: Optional[List[str]],
                      domain: str, limit: Optional[int] = None) -> List[str]:
    """Page keywords first, then seeds (or brand-based fallbacks), de-duplicated."""
    limit = limit or get_max_serp_keywords()
    seeds = [keyword.strip().lower() for keyword in seed_keywords or [] if keyword and keyword.strip()]
    if not seeds:
        brand = brand_name(domain)
        seeds = [f"{brand} products", f"{brand} services", f"best {brand}", f"{brand} online", f"buy {brand}"]
    combined = list(page_keywords[:PAGE_KEYWORD_LIMIT]) + seeds[:SEED_KEYWORD_LIMIT]
    return list(OrderedDict.fromkeys(combined))[:limit]


def is_generic_platform(domain: str) -> bool:
    return any(domain == platform or domain.endswith('.' + platform) for platform in GENERIC_PLATFORMS)


def analyze_competitor_gap(serp_results: List[Dict[str, Any]], my_domain: str) -> Dict[str, Any]:
    competitors: Dict[str, Dict[str, Any]] = {}
    my_keywords = set()
    missed_keywords = []

    for serp in serp_results:
        if serp.get('my_position'):
            my_keywords.add(serp['keyword'])
        else:
            top = serp.get('top_competitors') or []
            missed_keywords.append({
                'keyword': serp['keyword'],
                'difficulty': calculate_keyword_difficulty(serp)['difficulty'],
                'top_competitor': top[0]['domain'] if top else None,
            })

        for competitor in (serp.get('top_competitors') or [])[:10]:
            domain = competitor.get('domain')
            if not domain or matches_domain(domain, my_domain):
                continue
            entry = competitors.setdefault(domain, {
                'domain': domain, 'appearances': 0, 'keywords': [], 'positions': [],
            })
            entry['appearances'] += 1
            entry['keywords'].append(serp['keyword'])
            entry['positions'].append(competitor['position'])

    for entry in competitors.values():
        entry['avg_position'] = round_half_up(sum(entry['positions']) / len(entry['positions']))

    top_competitors = sorted(competitors.values(), key=lambda entry: entry['appearances'], reverse=True)
    return {
        'my_keywords_count': len(my_keywords),
        'missed_opportunities': len(missed_keywords),
        'missed_keywords': missed_keywords[:MAX_LISTED_KEYWORDS],
        'top_competitors': top_competitors[:MAX_COMPETITORS],
        'total_keywords_analyzed': len(serp_results),
    }


def split_competitors(gap: Dict[str, Any]) -> Dict[str, List[Dict[str, Any]]]:
    """Direct business competitors vs generic content platforms."""
    direct, content = [], []
    for competitor in gap.get('top_competitors') or []:
        entry = {
            'domain': competitor['domain'],
            'appearances': competitor['appearances'],
            'avg_position': competitor['avg_position'],
        }
        (content if is_generic_platform(competitor['domain']) else direct).append(entry)
    return {'direct': direct, 'content': content}


def summarize_regional_rankings(keyword: str, locations: List[Dict[str, Any]]) -> Dict[str, Any]:
    ranked = [entry for entry in locations if entry.get('position')]
    positions = [entry['position'] for entry in ranked]
    best = min(ranked, key=lambda entry: entry['position']) if ranked else None
    worst = max(ranked, key=lambda entry: entry['position']) if ranked else None

    return {
        'keyword': keyword,
        'locations': locations,
        'analysis': {
            'avg_position': round_half_up(sum(positions) / len(positions)) if positions else None,
            'best_location': best['location'] if best else None,
            'best_position': best['position'] if best else None,
            'worst_location': worst['location'] if worst else None,
            'worst_position': worst['position'] if worst else None,
            'ranking_in': len(positions),
            'not_ranking_in': len(locations) - len(positions),
            'regional_variance': max(positions) - min(positions) if len(positions) > 1 else 0,
        },
    }


def compare_device_positions(keyword: str, location: str, desktop: Dict[str, Any],
                             mobile: Dict[str, Any]) -> Dict[str, Any]:
    desktop_position = desktop.get('my_position')
    mobile_position = mobile.get('my_position')
    difference = (mobile_position or 0) - (desktop_position or 0)

    if not desktop_position and not mobile_position:
        analysis = 'Not ranking on either device'
    elif desktop_position and not mobile_position:
        analysis = 'Ranking on desktop only - mobile optimization needed'
    elif mobile_position and not desktop_position:
        analysis = 'Ranking on mobile only - unusual pattern'
    elif difference == 0:
        analysis = 'Same position on both devices'
    elif difference > 0:
        analysis = f"Ranking {abs(difference)} positions lower on mobile"
    else:
        analysis = f"Ranking {abs(difference)} positions higher on mobile"

    if not desktop_position and not mobile_position:
        recommendation = 'Not ranking yet - no device gap to act on'
    elif not mobile_position:
        recommendation = 'Missing from mobile results - prioritize mobile optimization'
    elif not desktop_position:
        recommendation = 'Missing from desktop results - review desktop page experience'
    elif difference > 5:
        recommendation = 'Significant mobile ranking gap - prioritize mobile optimization'
    elif difference < -5:
        recommendation = 'Mobile performing better - leverage mobile-first indexing'
    else:
        recommendation = 'Rankings consistent across devices'

    def device_summary(serp):
        return {
            'position': serp.get('my_position'),
            'total_results': serp.get('total_results'),
            'serp_features': ((serp.get('serp_features') or {}).get('rich_results_summary') or {}).get('feature_types', []),
        }

    return {
        'keyword': keyword,
        'location': location,
        'desktop': device_summary(desktop),
        'mobile': device_summary(mobile),
        'difference': difference,
        'analysis': analysis,
        'recommendation': recommendation,
    }


async def check_regional_rankings(client: SerpApiClient, keyword: str, domain: str,
                                  locations: Optional[List[str]] = None) -> Dict[str, Any]:
    locations = locations or get_regional_locations()
    results = []
    for index, location in enumerate(locations):
        if index:
            await client.pause()
        serp = await client.search(keyword, location, domain)
        if not serp:
            continue
        top = serp.get('top_competitors') or []
        results.append({
            'location': location,
            'position': serp.get('my_position'),
            'total_results': serp.get('total_results'),
            'top_competitor': top[0]['domain'] if top else None,
            'serp_features': serp['serp_features']['rich_results_summary']['feature_types'],
        })
        position = serp.get('my_position')
        logger.info(f'"{keyword}" in {location}: {"#" + str(position) if position else "Not ranking"}')
    return summarize_regional_rankings(keyword, results)


async def compare_mobile_vs_desktop(client: SerpApiClient, keyword: str, domain: str,
                                    location: Optional[str] = None) -> Optional[Dict[str, Any]]:
    location = location or get_serp_location()
    logger.info(f'Comparing mobile vs desktop for "{keyword}"')
    desktop = await client.search(keyword, location, domain, device='desktop')
    await client.pause()
    mobile = await client.search(keyword, location, domain, device='mobile')
    if not desktop or not mobile:
        return None
    return compare_device_positions(keyword, location, desktop, mobile)


def _significant_tokens(keyword: str) -> List[str]:
    return [token for token in re.findall(r'\w+', keyword.lower()) if len(token) >= 3 and token not in STOP_WORDS]


def build_keyword_clusters(signals: List[KeywordSignal]) -> List[Dict[str, Any]]:
    """Group keywords under the term most of them share."""
    token_counts = Counter()
    for signal in signals:
        token_counts.update(set(_significant_tokens(signal.keyword)))

    clusters: Dict[str, List[KeywordSignal]] = OrderedDict()
    for signal in signals:
        tokens = _significant_tokens(signal.keyword)
        if not tokens:
            continue
        head = max(tokens, key=lambda token: (token_counts[token], -tokens.index(token)))
        name = head if token_counts[head] > 1 else signal.keyword
        clusters.setdefault(name, []).append(signal)

    result = []
    for name, members in clusters.items():
        best_quick_win = max(member.quick_win_score for member in members)
        ranking = [member for member in members if member.position]
        intents = Counter(member.intent for member in members)
        result.append({
            'name': name,
            'keywords': [member.keyword for member in members],
            'dominant_intent': intents.most_common(1)[0][0],
            'avg_difficulty': round_half_up(sum(member.difficulty for member in members) / len(members)),
            'ranking_keywords': len(ranking),
            'priority': 'High' if best_quick_win >= 70 else 'Medium' if best_quick_win >= 50 else 'Low',
            'action': (
                'Strengthen the pages already ranking for this topic' if ranking
                else 'Create a dedicated page targeting this topic'
            ),
        })
    result.sort(key=lambda cluster: len(cluster['keywords']), reverse=True)
    return result


def fallback_suggested_keywords(domain: str) -> List[Dict[str, Any]]:
    brand = brand_name(domain)
    return [
        {
            'category': 'Transactional',
            'keywords': [
                {'word': f"buy {brand} products online", 'intent': 'transactional'},
                {'word': f"best {brand} deals", 'intent': 'transactional'},
                {'word': f"{brand} online store", 'intent': 'transactional'},
                {'word': f"order {brand} products", 'intent': 'transactional'},
            ],
        },
        {
            'category': 'Informational',
            'keywords': [
                {'word': f"what is {brand}", 'intent': 'informational'},
                {'word': f"how to use {brand}", 'intent': 'informational'},
                {'word': f"{brand} guide", 'intent': 'informational'},
                {'word': f"{brand} reviews", 'intent': 'informational'},
            ],
        },
        {
            'category': 'Long-Tail',
            'keywords': [
                {'word': f"best {brand} for beginners", 'intent': 'informational'},
                {'word': f"affordable {brand} options", 'intent': 'transactional'},
                {'word': f"{brand} customer service", 'intent': 'navigational'},
                {'word': f"{brand} near me", 'intent': 'local'},
            ],
        },
    ]


def suggest_keywords(serp_results: List[Dict[str, Any]], checked: List[str], domain: str) -> List[Dict[str, Any]]:
    """Related searches and PAA questions we do not target yet, grouped by intent."""
    seen = {keyword.lower() for keyword in checked}
    categories: Dict[str, List[Dict[str, str]]] = OrderedDict(
        (name, []) for name in ('Transactional', 'Informational', 'Local', 'Navigational', 'Long-Tail')
    )

    for serp in serp_results:
        features = serp.get('serp_features') or {}
        candidates = [search.get('query') for search in features.get('related_searches') or []]
        candidates += [question.get('question') for question in features.get('people_also_ask') or []]
        for candidate in candidates:
            if not candidate:
                continue
            word = candidate.strip().lower().rstrip('?')
            if word in seen:
                continue
            seen.add(word)
            intent = classify_query_intent(word)
            category = 'Long-Tail' if intent == 'Informational' and len(word.split()) >= LONG_TAIL_WORDS else intent
            if len(categories[category]) < MAX_SUGGESTIONS_PER_CATEGORY:
                categories[category].append({'word': word, 'intent': intent.lower()})

    suggestions = [{'category': name, 'keywords': words} for name, words in categories.items() if words]
    return suggestions or fallback_suggested_keywords(domain)


@dataclass
class KeywordIntelligenceReport:
    keywords_checked: List[str] = field(default_factory=list)
    serp_results: List[Dict[str, Any]] = field(default_factory=list)
    signals: List[KeywordSignal] = field(default_factory=list)
    sampled_positions: List[Dict[str, Any]] = field(default_factory=list)
    competitor_gap: Optional[Dict[str, Any]] = None
    serp_competitors: Dict[str, List[Dict[str, Any]]] = field(default_factory=lambda: {'direct': [], 'content': []})
    quick_wins: List[Dict[str, Any]] = field(default_factory=list)
    high_opportunity_keywords: List[Dict[str, Any]] = field(default_factory=list)
    ctr_analysis: List[Dict[str, Any]] = field(default_factory=list)
    regional_analysis: Optional[Dict[str, Any]] = None
    device_comparison: Optional[Dict[str, Any]] = None
    keyword_clusters: List[Dict[str, Any]] = field(default_factory=list)
    suggested_keywords: List[Dict[str, Any]] = field(default_factory=list)

    @property
    def visibility_percentage(self) -> int:
        if not self.serp_results:
            return 0
        ranked = [serp for serp in self.serp_results if serp.get('my_position')]
        return round_half_up(len(ranked) / len(self.serp_results) * 100)


class KeywordIntelligence:
    """SERP-driven analysis of the keywords a site targets."""

    def __init__(self, client: SerpApiClient):
        self.client = client

    async def collect(self, domain: str, keywords: List[str]) -> KeywordIntelligenceReport:
        """Serial SERP lookups and per-keyword scoring."""
        report = KeywordIntelligenceReport(keywords_checked=list(keywords))
        if not keywords or not self.client.available:
            logger.warning(f"Skipping SERP analysis for {domain}: no keywords or no SERP provider")
            report.suggested_keywords = fallback_suggested_keywords(domain)
            return report

        logger.info(f"Checking {len(keywords)} keywords for SERP data")
        report.serp_results = await self.client.batch_check_keywords(keywords, domain)
        if not report.serp_results:
            logger.warning(f"No SERP data returned for {domain}; using fallback keyword suggestions")
            report.suggested_keywords = fallback_suggested_keywords(domain)
            return report

        for serp in report.serp_results:
            signal = build_keyword_signal(serp)
            report.signals.append(signal)
            if serp.get('my_position'):
                report.sampled_positions.append({'keyword': serp['keyword'], 'position': serp['my_position']})

            if signal.quick_win_score >= QUICK_WIN_THRESHOLD:
                quick_win = calculate_quick_win_score(serp)
                report.quick_wins.append({
                    'keyword': signal.keyword,
                    'position': signal.position,
                    'score': signal.quick_win_score,
                    'priority': quick_win['priority'],
                    'difficulty': signal.difficulty_label,
                    'recommendation': quick_win['recommendation'],
                })
            if signal.opportunity_score >= HIGH_OPPORTUNITY_THRESHOLD:
                report.high_opportunity_keywords.append({
                    'keyword': signal.keyword,
                    'score': signal.opportunity_score,
                    'intent': signal.intent,
                    'serp_analysis': analyze_serp_features(serp),
                })

            ctr = analyze_ctr_potential(serp)
            if ctr:
                report.ctr_analysis.append(ctr)

        report.quick_wins.sort(key=lambda entry: entry['score'], reverse=True)
        report.high_opportunity_keywords.sort(key=lambda entry: entry['score'], reverse=True)
        report.quick_wins = report.quick_wins[:MAX_LISTED_KEYWORDS]
        report.high_opportunity_keywords = report.high_opportunity_keywords[:MAX_LISTED_KEYWORDS]
        return report

    def compare(self, domain: str, report: KeywordIntelligenceReport) -> None:
        """Cross-keyword views that need no further lookups."""
        report.competitor_gap = analyze_competitor_gap(report.serp_results, domain)
        report.serp_competitors = split_competitors(report.competitor_gap)
        report.keyword_clusters = build_keyword_clusters(report.signals)
        report.suggested_keywords = suggest_keywords(report.serp_results, report.keywords_checked, domain)

    async def compare_locations_and_devices(self, domain: str, report: KeywordIntelligenceReport) -> None:
        lead = self.lead_keyword(report)
        if not lead:
            return
        report.regional_analysis = await check_regional_rankings(self.client, lead, domain)
        await self.client.pause()
        report.device_comparison = await compare_mobile_vs_desktop(self.client, lead, domain)

    @staticmethod
    def lead_keyword(report: KeywordIntelligenceReport) -> Optional[str]:
        """Best-ranking keyword, or the first one checked when nothing ranks."""
        if report.sampled_positions:
            return min(report.sampled_positions, key=lambda entry: entry['position'])['keyword']
        if report.serp_results:
            return report.serp_results[0]['keyword']
        return None

    async def analyze(self, domain: str, keywords: List[str]) -> KeywordIntelligenceReport:
        report = await self.collect(domain, keywords)
        if report.serp_results:
            self.compare(domain, report)
            await self.compare_locations_and_devices(domain, report)
        return report
