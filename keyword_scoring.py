"""Keyword scores derived from a single SERP snapshot.

All functions here are pure: they take the dict returned by
SerpApiClient.search() and never touch the network. Scores are integers
clamped to 0..100.
"""
import re
from typing import Dict, Any, List, Optional

from models import KeywordSignal, round_half_up

MAX_KEYWORD_SCORE = 100

# Difficulty
TOTAL_RESULTS_BUCKETS = (
    (100_000_000, 30, 'Very high competition (100M+ results)'),
    (10_000_000, 20, 'High competition (10M+ results)'),
    (1_000_000, 10, 'Medium competition (1M+ results)'),
)
LOW_COMPETITION_POINTS = 5
FEATURED_SNIPPET_DIFFICULTY = 15
KNOWLEDGE_GRAPH_DIFFICULTY = 10
LOCAL_PACK_DIFFICULTY = 10
HIGH_AUTHORITY_DOMAINS = ('wikipedia.org', 'amazon.com', 'youtube.com', 'facebook.com', 'linkedin.com', 'reddit.com')
MULTIPLE_AUTHORITY_POINTS = 25
SINGLE_AUTHORITY_POINTS = 15
RELATED_INTEREST_THRESHOLD = 8
RELATED_INTEREST_POINTS = 10

DIFFICULTY_LABELS = ((70, 'Very Hard'), (50, 'Hard'), (30, 'Medium'))

# Quick wins
QUICK_WIN_DIFFICULTY_POINTS = ((30, 40, 'Low difficulty (easy to rank)'),
                               (50, 25, 'Medium difficulty'),
                               (70, 10, 'High difficulty'))
QUICK_WIN_POSITION_POINTS = ((3, 10, 'Already in top 3'),
                             (10, 30, 'Ranking in top 10 - easy to improve'),
                             (20, 25, 'Ranking on page 1-2'),
                             (50, 15, 'Ranking in top 50'))
QUICK_WIN_PRIORITIES = ((70, 'High Priority'), (50, 'Medium Priority'), (30, 'Low Priority'))

# Intent
TRANSACTIONAL_TERMS = re.compile(r'\b(buy|purchase|price|cheap|deal|discount|shop|order|sale)\b')
LOCAL_TERMS = re.compile(r'\b(near me|nearby|location|address|directions)\b')
NAVIGATIONAL_TERMS = re.compile(r'\b(login|sign in|account|dashboard|portal)\b')
INFORMATIONAL_TERMS = re.compile(r'\b(how|what|why|when|where|guide|tutorial|tips|best)\b')

# CTR
POWER_WORDS = ('best', 'top', 'guide', 'ultimate', 'complete', 'free', 'new', 'proven', 'easy', 'fast')
IDEAL_TITLE_LENGTH = (50, 60)
IDEAL_DESCRIPTION_LENGTH = (150, 160)
CTR_BASE_SCORE = 50


def _features(serp_data: Dict[str, Any]) -> Dict[str, Any]:
    return serp_data.get('serp_features') or {}


def _count(features: Dict[str, Any], name: str) -> int:
    return len(features.get(name) or [])


def _label_for(score: int, table, default: str) -> str:
    for threshold, label in table:
        if score >= threshold:
            return label
    return default


def difficulty_label(score: int) -> str:
    return _label_for(score, DIFFICULTY_LABELS, 'Easy')


def calculate_keyword_difficulty(serp_data: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    if not serp_data:
        return None

    score = 0
    factors = []
    total_results = serp_data.get('total_results') or 0

    for threshold, points, factor in TOTAL_RESULTS_BUCKETS:
        if total_results > threshold:
            score += points
            factors.append(factor)
            break
    else:
        score += LOW_COMPETITION_POINTS
        factors.append('Low competition (<1M results)')

    features = _features(serp_data)
    if features.get('featured_snippet'):
        score += FEATURED_SNIPPET_DIFFICULTY
        factors.append('Featured snippet present')
    if features.get('knowledge_graph'):
        score += KNOWLEDGE_GRAPH_DIFFICULTY
        factors.append('Knowledge graph present')
    if features.get('local_pack'):
        score += LOCAL_PACK_DIFFICULTY
        factors.append('Local pack present')

    top_domains = [competitor.get('domain') or '' for competitor in (serp_data.get('top_competitors') or [])[:3]]
    authority_count = sum(
        1 for domain in top_domains if any(authority in domain for authority in HIGH_AUTHORITY_DOMAINS)
    )
    if authority_count >= 2:
        score += MULTIPLE_AUTHORITY_POINTS
        factors.append('Multiple high-authority domains in top 3')
    elif authority_count == 1:
        score += SINGLE_AUTHORITY_POINTS
        factors.append('High-authority domain in top 3')

    if _count(features, 'related_searches') >= RELATED_INTEREST_THRESHOLD:
        score += RELATED_INTEREST_POINTS
        factors.append('High search interest (8+ related searches)')

    score = min(MAX_KEYWORD_SCORE, score)
    if score >= 70:
        recommendation = 'Focus on long-tail variations'
    elif score >= 50:
        recommendation = 'Requires strong content and backlinks'
    else:
        recommendation = 'Good opportunity with quality content'

    return {
        'score': score,
        'difficulty': difficulty_label(score),
        'factors': factors,
        'recommendation': recommendation,
    }


def calculate_opportunity_score(serp_data: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    if not serp_data:
        return None

    features = _features(serp_data)
    position = serp_data.get('my_position')
    opportunities = []

    def add(kind, value, description, action, **extra):
        opportunities.append(dict(type=kind, value=value, description=description, action=action, **extra))

    if not features.get('featured_snippet'):
        add('Featured Snippet', 25, 'No featured snippet - opportunity to claim position zero',
            'Structure content with clear Q&A format, use proper headings')
    elif position and position <= 10:
        add('Featured Snippet', 15, 'You rank in top 10 - can compete for featured snippet',
            'Optimize existing content for featured snippet format')

    paa = features.get('people_also_ask') or []
    if len(paa) >= 3:
        add('People Also Ask', 20, f"{len(paa)} PAA questions found",
            'Create FAQ section answering these questions',
            questions=[question.get('question') for question in paa[:5]])

    related = features.get('related_searches') or []
    if len(related) >= 5:
        add('Related Keywords', 15, f"{len(related)} related search terms",
            'Target these as secondary keywords in content',
            keywords=[search.get('query') for search in related[:8]])

    if features.get('local_pack'):
        add('Local SEO', 20, 'Local pack present - local intent detected',
            'Optimize Google Business Profile, get local citations')
    if features.get('shopping_results'):
        add('Shopping/Product', 15, 'Shopping results present - e-commerce opportunity',
            'Implement product schema, optimize product pages')
    if features.get('images'):
        add('Image SEO', 10, 'Image pack present', 'Optimize images with proper alt text and file names')
    if features.get('videos'):
        add('Video Content', 10, 'Video results present', 'Consider creating video content for this keyword')

    score = min(MAX_KEYWORD_SCORE, sum(opportunity['value'] for opportunity in opportunities))
    return {
        'score': score,
        'total_opportunities': len(opportunities),
        'opportunities': opportunities,
        'priority': 'High' if score >= 60 else 'Medium' if score >= 40 else 'Low',
    }


def quick_win_priority(score: int) -> str:
    return _label_for(score, QUICK_WIN_PRIORITIES, 'Not Recommended')


def calculate_quick_win_score(serp_data: Optional[Dict[str, Any]],
                              my_position: Optional[int] = None) -> Optional[Dict[str, Any]]:
    """Low difficulty + close to page one + open SERP features = quick win."""
    if not serp_data:
        return None
    if my_position is None:
        my_position = serp_data.get('my_position')

    score = 0
    factors = []
    difficulty = calculate_keyword_difficulty(serp_data)['score']

    for threshold, points, factor in QUICK_WIN_DIFFICULTY_POINTS:
        if difficulty < threshold:
            score += points
            factors.append(factor)
            break

    if my_position:
        for threshold, points, factor in QUICK_WIN_POSITION_POINTS:
            if my_position <= threshold:
                score += points
                factors.append(factor)
                break
    elif difficulty < 30:
        score += 20
        factors.append('Not ranking yet, but low competition')

    features = _features(serp_data)
    if not features.get('featured_snippet'):
        score += 15
        factors.append('No featured snippet - opportunity to claim')
    paa_count = _count(features, 'people_also_ask')
    if paa_count > 0:
        score += 10
        factors.append(f"{paa_count} PAA questions to target")
    if _count(features, 'related_searches') >= 5:
        score += 5
        factors.append('Multiple related keywords to target')

    score = min(MAX_KEYWORD_SCORE, score)
    if score >= 70:
        recommendation = 'Quick win opportunity - prioritize this keyword'
    elif score >= 50:
        recommendation = 'Good opportunity with moderate effort'
    elif score >= 30:
        recommendation = 'Requires significant effort'
    else:
        recommendation = 'Focus on easier keywords first'

    return {
        'score': score,
        'priority': quick_win_priority(score),
        'factors': factors,
        'recommendation': recommendation,
    }


def determine_serp_type(features: Dict[str, Any]) -> str:
    if features.get('local_pack'):
        return 'Local'
    if features.get('shopping_results'):
        return 'Transactional'
    if features.get('knowledge_graph') or features.get('featured_snippet') or features.get('videos'):
        return 'Informational'
    return 'Mixed'


def classify_search_intent(serp_data: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """Signals are applied in a fixed order and the last one to assign an intent wins.

    Informational signals only add confidence while nothing stronger has
    claimed the query.
    """
    if not serp_data:
        return None

    features = _features(serp_data)
    keyword = (serp_data.get('keyword') or '').lower()
    intent = 'Informational'
    confidence = 0
    signals = []

    if features.get('shopping_results'):
        intent = 'Transactional'
        confidence += 40
        signals.append('Shopping results present')
    if TRANSACTIONAL_TERMS.search(keyword):
        intent = 'Transactional'
        confidence += 30
        signals.append('Transactional keywords in query')
    if features.get('local_pack'):
        intent = 'Local'
        confidence += 50
        signals.append('Local pack present')
    if LOCAL_TERMS.search(keyword):
        intent = 'Local'
        confidence += 30
        signals.append('Local keywords in query')
    if NAVIGATIONAL_TERMS.search(keyword):
        intent = 'Navigational'
        confidence += 40
        signals.append('Navigational keywords in query')

    if features.get('featured_snippet'):
        if intent == 'Informational':
            confidence += 30
        signals.append('Featured snippet present')
    paa_count = _count(features, 'people_also_ask')
    if paa_count > 0:
        if intent == 'Informational':
            confidence += 20
        signals.append(f"{paa_count} PAA questions")
    if INFORMATIONAL_TERMS.search(keyword):
        if intent == 'Informational':
            confidence += 25
        signals.append('Informational keywords in query')

    return {
        'intent': intent,
        'confidence': min(MAX_KEYWORD_SCORE, confidence),
        'signals': signals,
        'serp_type': determine_serp_type(features),
    }


def classify_query_intent(query: str) -> str:
    """Intent from the wording of a query alone, for suggestions with no SERP of their own."""
    query = (query or '').lower()
    if NAVIGATIONAL_TERMS.search(query):
        return 'Navigational'
    if LOCAL_TERMS.search(query):
        return 'Local'
    if TRANSACTIONAL_TERMS.search(query):
        return 'Transactional'
    return 'Informational'


def analyze_serp_features(serp_data: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    if not serp_data:
        return None

    features = _features(serp_data)
    position = serp_data.get('my_position')
    opportunities = []
    threats = []

    if features.get('featured_snippet'):
        if position and position <= 10:
            opportunities.append({
                'type': 'Featured Snippet',
                'description': 'You rank in top 10 - optimize for featured snippet',
                'action': 'Add clear, concise answer in first paragraph with proper heading',
                'potential': 'High',
            })
        else:
            threats.append({
                'type': 'Featured Snippet',
                'description': 'Competitor owns featured snippet',
                'impact': 'Takes clicks from position #1',
            })
    else:
        opportunities.append({
            'type': 'Featured Snippet',
            'description': 'No featured snippet - opportunity to claim it',
            'action': 'Structure content with clear Q&A format',
            'potential': 'High',
        })

    paa = features.get('people_also_ask') or []
    if paa:
        opportunities.append({
            'type': 'People Also Ask',
            'description': f"{len(paa)} related questions found",
            'action': 'Create content answering these questions',
            'potential': 'Medium',
            'questions': [question.get('question') for question in paa],
        })

    related = features.get('related_searches') or []
    if related:
        opportunities.append({
            'type': 'Related Keywords',
            'description': f"{len(related)} related search terms",
            'action': 'Target these as secondary keywords',
            'potential': 'Medium',
            'keywords': [search.get('query') for search in related],
        })

    local_pack = features.get('local_pack')
    if local_pack and local_pack.get('count', 0) > 0:
        opportunities.append({
            'type': 'Local SEO',
            'description': 'Local pack present - local intent detected',
            'action': 'Optimize Google Business Profile and local citations',
            'potential': 'High',
        })

    return {
        'opportunities': opportunities,
        'threats': threats,
        'serp_type': determine_serp_type(features),
        'competition_level': calculate_keyword_difficulty(serp_data)['difficulty'],
    }


def _power_words_in(title: str) -> List[str]:
    title = (title or '').lower()
    return [word for word in POWER_WORDS if re.search(rf'\b{word}\b', title)]


def _has_number(text: Optional[str]) -> bool:
    return bool(re.search(r'\d', text or ''))


def _length_recommendation(kind: str, length: int, ideal) -> Optional[Dict[str, Any]]:
    low, high = ideal
    recommended = f"{low}-{high} characters"
    if length < low:
        return {
            'type': f"{kind} Length",
            'issue': f"{kind} too short",
            'current': length,
            'recommended': recommended,
            'action': f"Expand {kind.lower()} with descriptive keywords",
        }
    if length > high:
        return {
            'type': f"{kind} Length",
            'issue': f"{kind} too long (may be truncated)",
            'current': length,
            'recommended': recommended,
            'action': f"Shorten {kind.lower()} to avoid truncation",
        }
    return None


def analyze_ctr_potential(serp_data: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """How clickable our own listing is next to the top three results."""
    if not serp_data or not serp_data.get('my_result'):
        return None

    my_result = serp_data['my_result']
    competitors = (serp_data.get('top_competitors') or [])[:3]
    title = my_result.get('title') or ''
    snippet = my_result.get('snippet') or ''

    def average(values):
        return sum(values) / len(values) if values else 0

    avg_title_length = average([len(competitor.get('title') or '') for competitor in competitors])
    avg_desc_length = average([len(competitor.get('snippet') or '') for competitor in competitors])
    avg_power_words = average([len(_power_words_in(competitor.get('title'))) for competitor in competitors])
    competitors_with_numbers = sum(1 for competitor in competitors if _has_number(competitor.get('title')))

    my_power_words = _power_words_in(title)
    has_number = _has_number(title)
    recommendations = []

    title_issue = _length_recommendation('Title', len(title), IDEAL_TITLE_LENGTH)
    if title_issue:
        recommendations.append(title_issue)
    if len(my_power_words) < avg_power_words:
        recommendations.append({
            'type': 'Title Power Words',
            'issue': 'Fewer power words than competitors',
            'current': len(my_power_words),
            'competitor_avg': round_half_up(avg_power_words),
            'action': f"Add power words like: {', '.join(POWER_WORDS[:5])}",
        })
    if not has_number and competitors_with_numbers >= 2:
        recommendations.append({
            'type': 'Title Numbers',
            'issue': 'Competitors use numbers in titles',
            'action': 'Add numbers (e.g., "10 Best...", "2024 Guide...")',
        })
    description_issue = _length_recommendation('Description', len(snippet), IDEAL_DESCRIPTION_LENGTH)
    if description_issue:
        recommendations.append(description_issue)

    score = CTR_BASE_SCORE
    if IDEAL_TITLE_LENGTH[0] <= len(title) <= IDEAL_TITLE_LENGTH[1]:
        score += 15
    if IDEAL_DESCRIPTION_LENGTH[0] <= len(snippet) <= IDEAL_DESCRIPTION_LENGTH[1]:
        score += 15
    if len(my_power_words) >= avg_power_words:
        score += 10
    if has_number:
        score += 10

    return {
        'keyword': serp_data.get('keyword'),
        'my_position': serp_data.get('my_position'),
        'ctr_score': min(MAX_KEYWORD_SCORE, score),
        'my_title': {'text': title, 'length': len(title), 'power_words': my_power_words, 'has_number': has_number},
        'my_description': {'text': snippet, 'length': len(snippet)},
        'competitor_avg': {
            'title_length': round_half_up(avg_title_length),
            'desc_length': round_half_up(avg_desc_length),
            'power_words': round_half_up(avg_power_words),
            'with_numbers': competitors_with_numbers,
        },
        'recommendations': recommendations,
        'priority': 'High' if len(recommendations) >= 3 else 'Medium' if recommendations else 'Low',
    }


def build_keyword_signal(serp_data: Dict[str, Any]) -> KeywordSignal:
    difficulty = calculate_keyword_difficulty(serp_data)
    intent = classify_search_intent(serp_data)
    return KeywordSignal(
        keyword=serp_data.get('keyword'),
        serp_features=(_features(serp_data).get('rich_results_summary') or {}),
        difficulty=difficulty['score'],
        difficulty_label=difficulty['difficulty'],
        opportunity_score=calculate_opportunity_score(serp_data)['score'],
        quick_win_score=calculate_quick_win_score(serp_data)['score'],
        intent=intent['intent'],
        confidence=intent['confidence'],
        position=serp_data.get('my_position'),
    )
