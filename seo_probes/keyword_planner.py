import asyncio
from typing import Dict, Any, List, Optional

import aiohttp

from scan_config import get_ads_credentials
from seo_probes.base import BaseProbe

KEYWORD_PLANNER_API = 'https://googleads.googleapis.com/v18/customers'
KEYWORD_PLANNER_TIMEOUT = 30
MAX_SEED_KEYWORDS = 10
GEO_TARGET = 'geoTargetConstants/2840'  # United States
LANGUAGE = 'languageConstants/1000'  # English
MICROS = 1_000_000


class KeywordPlannerClient(BaseProbe):
    """Monthly search volume and competition from the Google Ads Keyword Planner."""

    def __init__(self, session: Optional[aiohttp.ClientSession] = None, timeout: float = KEYWORD_PLANNER_TIMEOUT):
        super().__init__(session=session, timeout=timeout)

    async def get_keyword_metrics(self, keywords: List[str]) -> Optional[List[Dict[str, Any]]]:
        credentials = get_ads_credentials()
        if not credentials:
            self.logger.info("Google Ads API not configured - search volume unavailable")
            return None
        if not keywords:
            return []

        url = f"{KEYWORD_PLANNER_API}/{credentials['customer_id']}:generateKeywordIdeas"
        payload = {
            'keywordSeed': {'keywords': keywords[:MAX_SEED_KEYWORDS]},
            'geoTargetConstants': [GEO_TARGET],
            'language': LANGUAGE,
            'includeAdultKeywords': False,
        }
        headers = {
            'Authorization': f"Bearer {credentials['access_token']}",
            'developer-token': credentials['developer_token'],
        }

        data = await self._request(url, payload, headers)
        if data is None:
            return None
        return [parse_keyword_idea(result) for result in data.get('results') or []]

    async def _request(self, url: str, payload: Dict[str, Any], headers: Dict[str, str]) -> Optional[Dict[str, Any]]:
        session = await self._ensure_session()
        try:
            async with session.post(url, json=payload, headers=headers,
                                    timeout=self.client_timeout(self.timeout)) as response:
                if response.status != 200:
                    self.logger.error(f"Keyword Planner API error: {response.status}")
                    return None
                return await response.json()
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            self.logger.error(f"Keyword Planner fetch failed: {e}")
            return None


def parse_keyword_idea(result: Dict[str, Any]) -> Dict[str, Any]:
    metrics = result.get('keywordIdeaMetrics') or {}
    return {
        'keyword': result.get('text'),
        'avg_monthly_searches': int(metrics.get('avgMonthlySearches') or 0),
        'competition': metrics.get('competition') or 'UNKNOWN',
        'competition_index': int(metrics.get('competitionIndex') or 0),
        'low_top_of_page_bid': int(metrics.get('lowTopOfPageBidMicros') or 0) / MICROS,
        'high_top_of_page_bid': int(metrics.get('highTopOfPageBidMicros') or 0) / MICROS,
    }
