"""SerpAPI client: live Google results, rank lookup and SERP feature extraction."""
import asyncio
from typing import Dict, Any, List, Optional
from urllib.parse import urlparse

import aiohttp

from scan_config import get_credential, get_serp_location, get_serp_request_delay, SERPAPI_KEY
from seo_probes.base import BaseProbe

SERPAPI_BASE = 'https://serpapi.com/search'
SERPAPI_TIMEOUT = 60
RESULTS_PER_QUERY = 100
TOP_COMPETITORS = 10

DOMAIN_ALIASES = {
    'chatgpt.com': ['openai.com', 'chat.openai.com'],
    'bard.google.com': ['google.com', 'ai.google'],
    'claude.ai': ['anthropic.com'],
}
MIN_CORE_NAME_LENGTH = 4


def extract_result_domain(link: Optional[str]) -> str:
    if not link:
        return ''
    try:
        host = urlparse(link).hostname or ''
    except ValueError:
        host = ''
    if not host and '/' in link:
        parts = link.split('/')
        host = parts[2] if len(parts) > 2 else ''
    host = host.lower()
    return host[4:] if host.startswith('www.') else host


def matches_domain(result_domain: str, target_domain: str) -> bool:
    """Does a search result belong to the target site?

    Exact host, subdomain, known alias, then the target's core name anywhere
    in the result host (only for names longer than three characters).
    """
    result_domain = (result_domain or '').lower()
    target = (target_domain or '').lower()
    if target.startswith('www.'):
        target = target[4:]
    if not result_domain or not target:
        return False

    if result_domain == target:
        return True
    if result_domain.endswith('.' + target):
        return True
    for alias in DOMAIN_ALIASES.get(target, []):
        if result_domain == alias or result_domain.endswith('.' + alias):
            return True
    core_name = target.split('.')[0]
    return len(core_name) >= MIN_CORE_NAME_LENGTH and core_name in result_domain


def find_position(organic_results: List[Dict[str, Any]], domain: Optional[str]):
    """1-based rank of the first matching organic result, with the result itself."""
    if not domain:
        return None, None
    for index, result in enumerate(organic_results):
        if matches_domain(extract_result_domain(result.get('link')), domain):
            return index + 1, result
    return None, None


def extract_serp_features(data: Dict[str, Any]) -> Dict[str, Any]:
    answer_box = data.get('answer_box')
    knowledge_graph = data.get('knowledge_graph')
    local_results = data.get('local_results')
    shopping = data.get('shopping_results')
    images = data.get('inline_images')
    videos = data.get('inline_videos')
    stories = data.get('top_stories')
    twitter = data.get('twitter_results')

    features = {
        'featured_snippet': {
            'type': answer_box.get('type'),
            'title': answer_box.get('title'),
            'snippet': answer_box.get('snippet') or answer_box.get('answer'),
            'link': answer_box.get('link'),
            'source_domain': extract_result_domain(answer_box.get('link')) or None,
        } if answer_box else None,
        'knowledge_graph': {
            'title': knowledge_graph.get('title'),
            'type': knowledge_graph.get('type'),
            'description': knowledge_graph.get('description'),
            'website': knowledge_graph.get('website'),
        } if knowledge_graph else None,
        'people_also_ask': [
            {
                'question': question.get('question'),
                'snippet': question.get('snippet'),
                'link': question.get('link'),
                'source_domain': extract_result_domain(question.get('link')) or None,
            }
            for question in data.get('related_questions') or []
        ],
        'related_searches': [
            {'query': search.get('query'), 'link': search.get('link')}
            for search in data.get('related_searches') or []
        ],
        'local_pack': None,
        'shopping_results': {
            'present': True,
            'count': len(shopping),
            'products': [
                {'title': product.get('title'), 'price': product.get('price'), 'source': product.get('source')}
                for product in shopping[:5]
            ],
        } if shopping else None,
        'images': {'present': True, 'count': len(images)} if images else None,
        'videos': {
            'present': True,
            'count': len(videos),
            'videos': [
                {'title': video.get('title'), 'link': video.get('link'), 'platform': video.get('platform')}
                for video in videos[:3]
            ],
        } if videos else None,
        'top_stories': {'present': True, 'count': len(stories)} if stories else None,
        'twitter_results': {
            'present': True,
            'count': len(twitter.get('tweets') or []) if isinstance(twitter, dict) else 0,
        } if twitter else None,
    }

    if local_results:
        places = local_results.get('places') if isinstance(local_results, dict) else local_results
        places = places or []
        features['local_pack'] = {
            'present': True,
            'count': len(places),
            'places': [
                {
                    'position': place.get('position'),
                    'title': place.get('title'),
                    'rating': place.get('rating'),
                    'reviews': place.get('reviews'),
                    'address': place.get('address'),
                }
                for place in places
            ],
        }

    feature_labels = [
        ('featured_snippet', 'Featured Snippet'),
        ('knowledge_graph', 'Knowledge Graph'),
        ('people_also_ask', 'People Also Ask'),
        ('related_searches', 'Related Searches'),
        ('local_pack', 'Local Pack'),
        ('shopping_results', 'Shopping Results'),
        ('images', 'Image Pack'),
        ('videos', 'Video Results'),
        ('top_stories', 'Top Stories'),
        ('twitter_results', 'Twitter Results'),
    ]
    present = [label for key, label in feature_labels if features[key]]
    features['rich_results_summary'] = {'total_features': len(present), 'feature_types': present}
    return features


def parse_serp_response(data: Dict[str, Any], keyword: str, location: str,
                        device: str, domain: Optional[str]) -> Dict[str, Any]:
    organic = data.get('organic_results') or []
    my_position, my_result = find_position(organic, domain)

    top_competitors = [
        {
            'position': index + 1,
            'title': result.get('title'),
            'link': result.get('link'),
            'domain': extract_result_domain(result.get('link')),
            'snippet': result.get('snippet'),
            'displayed_link': result.get('displayed_link'),
        }
        for index, result in enumerate(organic[:TOP_COMPETITORS])
    ]

    return {
        'keyword': keyword,
        'location': location,
        'device': device,
        'total_results': (data.get('search_information') or {}).get('total_results') or 0,
        'my_position': my_position,
        'my_result': my_result,
        'top_competitors': top_competitors,
        'serp_features': extract_serp_features(data),
    }


class SerpApiClient(BaseProbe):
    """Google results through SerpAPI. Unavailable (returns None) without SERPAPI_KEY."""

    def __init__(self, session: Optional[aiohttp.ClientSession] = None,
                 timeout: float = SERPAPI_TIMEOUT, request_delay: Optional[float] = None):
        super().__init__(session=session, timeout=timeout)
        self.request_delay = get_serp_request_delay() if request_delay is None else request_delay

    @property
    def available(self) -> bool:
        return bool(get_credential(SERPAPI_KEY))

    async def search(self, keyword: str, location: Optional[str] = None,
                     domain: Optional[str] = None, device: str = 'desktop') -> Optional[Dict[str, Any]]:
        api_key = get_credential(SERPAPI_KEY)
        if not api_key:
            self.logger.warning("SERPAPI_KEY not configured")
            return None

        location = location or get_serp_location()
        params = {
            'engine': 'google',
            'q': keyword,
            'location': location,
            'google_domain': 'google.com',
            'hl': 'en',
            'gl': 'us',
            'api_key': api_key,
            'num': RESULTS_PER_QUERY,
            'device': device,
        }
        self.logger.info(f'SERP API: Searching "{keyword}" [{location}, {device}]')
        data = await self._request(params)
        if data is None:
            return None
        return parse_serp_response(data, keyword, location, device, domain)

    async def _request(self, params: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        session = await self._ensure_session()
        try:
            async with session.get(SERPAPI_BASE, params=params,
                                   timeout=self.client_timeout(self.timeout)) as response:
                if response.status != 200:
                    error_text = await response.text()
                    self.logger.error(f"SERP API error ({response.status}): {error_text[:200]}")
                    return None
                return await response.json()
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            self.logger.error(f'SERP API search failed for "{params.get("q")}": {e}')
            return None

    async def pause(self) -> None:
        if self.request_delay > 0:
            await asyncio.sleep(self.request_delay)

    async def batch_check_keywords(self, keywords: List[str], domain: str,
                                   location: Optional[str] = None) -> List[Dict[str, Any]]:
        """Serial lookups with a pause between requests; failed lookups are skipped."""
        results = []
        for index, keyword in enumerate(keywords):
            if index:
                await self.pause()
            serp_data = await self.search(keyword, location, domain)
            if serp_data:
                position = serp_data['my_position']
                self.logger.info(f'"{keyword}": {"#" + str(position) if position else "Not ranking"}')
                results.append(serp_data)
        return results
