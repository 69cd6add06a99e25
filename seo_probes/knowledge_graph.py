import asyncio
from typing import Dict, Any, Optional

import aiohttp

from scan_config import get_credential, GOOGLE_API_KEY
from seo_probes.base import BaseProbe

KG_API_URL = 'https://kgsearch.googleapis.com/v1/entities:search'
KG_TIMEOUT = 15


class KnowledgeGraphClient(BaseProbe):
    """Looks the brand up in the Google Knowledge Graph."""

    def __init__(self, session: Optional[aiohttp.ClientSession] = None, timeout: float = KG_TIMEOUT):
        super().__init__(session=session, timeout=timeout)

    async def search(self, query: str, limit: int = 1) -> Optional[Dict[str, Any]]:
        api_key = get_credential(GOOGLE_API_KEY)
        if not api_key:
            self.logger.warning("GOOGLE_API_KEY missing, skipping Knowledge Graph search")
            return None

        self.logger.info(f'Searching Knowledge Graph for: "{query}"')
        payload = await self._request({'query': query, 'key': api_key, 'limit': limit, 'indent': 'true'})
        if payload is None:
            return None

        items = payload.get('itemListElement') or []
        if not items:
            self.logger.info(f'No Knowledge Graph results found for "{query}"')
            return None

        item = items[0].get('result') or {}
        detailed = item.get('detailedDescription') or {}
        return {
            'name': item.get('name'),
            'types': item.get('@type') or [],
            'description': item.get('description'),
            'detailed_description': detailed.get('articleBody'),
            'url': detailed.get('url'),
            'score': items[0].get('resultScore'),
            'id': item.get('@id'),
        }

    async def _request(self, params: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        session = await self._ensure_session()
        try:
            async with session.get(KG_API_URL, params=params,
                                   timeout=self.client_timeout(self.timeout)) as response:
                if response.status == 403:
                    self.logger.warning(
                        "Knowledge Graph API not accessible (403). "
                        "The scan continues without entity verification."
                    )
                    return None
                if response.status != 200:
                    error_text = await response.text()
                    self.logger.error(f"Knowledge Graph API error ({response.status}): {error_text[:500]}")
                    return None
                return await response.json()
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            self.logger.error(f"Knowledge Graph fetch failed: {e}")
            return None

    async def verify_entity(self, brand: str) -> Dict[str, Any]:
        """Entity verification block for the scan result."""
        entity = await self.search(brand)
        return entity_verification(entity)


def entity_verification(entity: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    if not entity:
        return {'recognized': False}
    return {
        'recognized': True,
        'name': entity.get('name'),
        'types': entity.get('types') or [],
        'score': entity.get('score'),
        'description': entity.get('description'),
        'detailed_description': entity.get('detailed_description'),
        'url': entity.get('url'),
        'id': entity.get('id'),
    }
