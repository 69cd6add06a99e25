import asyncio
from typing import Dict, Any, List, Optional

import aiohttp

from scan_config import get_credential, GOOGLE_API_KEY
from seo_probes.base import BaseProbe

NL_API_URL = 'https://language.googleapis.com/v1/documents'
NL_TIMEOUT = 30
MIN_TEXT_LENGTH = 50
ENTITY_TEXT_LIMIT = 10000
SENTIMENT_TEXT_LIMIT = 5000
TOP_ENTITIES = 10


class NaturalLanguageClient(BaseProbe):
    """Entity salience and sentiment from the Cloud Natural Language API."""

    def __init__(self, session: Optional[aiohttp.ClientSession] = None, timeout: float = NL_TIMEOUT):
        super().__init__(session=session, timeout=timeout)

    async def analyze_entities(self, text: Optional[str]) -> Optional[List[Dict[str, Any]]]:
        """Top entities by salience, or None when the API is unavailable or the text too short."""
        api_key = get_credential(GOOGLE_API_KEY)
        if not api_key:
            self.logger.warning("GOOGLE_API_KEY missing, skipping Natural Language analysis")
            return None
        if not text or len(text) < MIN_TEXT_LENGTH:
            self.logger.warning("Text too short for meaningful Natural Language analysis")
            return None

        self.logger.info(f"Sending content to Natural Language API ({len(text)} chars)")
        payload = {
            'document': {'type': 'PLAIN_TEXT', 'content': text[:ENTITY_TEXT_LIMIT]},
            'encodingType': 'UTF8',
        }
        data = await self._post('analyzeEntities', payload, api_key)
        if data is None:
            return None
        return rank_entities(data.get('entities') or [])

    async def analyze_sentiment(self, text: Optional[str]) -> Optional[Dict[str, Any]]:
        api_key = get_credential(GOOGLE_API_KEY)
        if not api_key or not text or len(text) < MIN_TEXT_LENGTH:
            return None
        payload = {'document': {'type': 'PLAIN_TEXT', 'content': text[:SENTIMENT_TEXT_LIMIT]}}
        data = await self._post('analyzeSentiment', payload, api_key)
        return data.get('documentSentiment') if data else None

    async def _post(self, method: str, payload: Dict[str, Any], api_key: str) -> Optional[Dict[str, Any]]:
        session = await self._ensure_session()
        url = f"{NL_API_URL}:{method}"
        try:
            async with session.post(url, params={'key': api_key}, json=payload,
                                    timeout=self.client_timeout(self.timeout)) as response:
                if response.status != 200:
                    error_text = await response.text()
                    self.logger.error(f"Natural Language API error ({response.status}): {error_text[:500]}")
                    return None
                return await response.json()
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            self.logger.error(f"Natural Language {method} failed: {e}")
            return None


def rank_entities(entities: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    ranked = sorted(entities, key=lambda entity: entity.get('salience') or 0, reverse=True)
    return [
        {
            'name': entity.get('name'),
            'type': entity.get('type'),
            'salience': entity.get('salience') or 0,
            'metadata': entity.get('metadata') or {},
        }
        for entity in ranked[:TOP_ENTITIES]
    ]


def content_salience(entities: Optional[List[Dict[str, Any]]]) -> List[Dict[str, Any]]:
    """Salience list in the shape the scan result stores."""
    return [
        {'entity': entity['name'], 'type': entity['type'], 'weight': entity['salience']}
        for entity in entities or []
    ]
