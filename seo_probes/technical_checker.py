import asyncio
from typing import Dict, Any, List

import aiohttp

from seo_probes.base import BaseProbe, USER_AGENT

HTTPS_POINTS = 10
ROBOTS_POINTS = 7
SITEMAP_POINTS = 8
MAX_TECHNICAL_SCORE = HTTPS_POINTS + ROBOTS_POINTS + SITEMAP_POINTS

HTTPS_TIMEOUT = 5
ROBOTS_TIMEOUT = 5
SITEMAP_TIMEOUT = 3


class TechnicalChecker(BaseProbe):
    """HTTPS, robots.txt and sitemap presence, worth up to 25 points."""

    async def check(self, domain: str) -> Dict[str, Any]:
        https_ok, robots_ok, sitemap_ok = await asyncio.gather(
            self.check_https(domain),
            self.check_robots_txt(domain),
            self.check_sitemap(domain),
        )

        checks = {
            'https': {
                'passed': https_ok,
                'points': HTTPS_POINTS if https_ok else 0,
                'max_points': HTTPS_POINTS,
                'name': 'HTTPS Enabled',
            },
            'robots_txt': {
                'passed': robots_ok,
                'points': ROBOTS_POINTS if robots_ok else 0,
                'max_points': ROBOTS_POINTS,
                'name': 'robots.txt Present',
            },
            'sitemap': {
                'passed': sitemap_ok,
                'points': SITEMAP_POINTS if sitemap_ok else 0,
                'max_points': SITEMAP_POINTS,
                'name': 'Sitemap Available',
            },
        }

        score = sum(check['points'] for check in checks.values())
        passed = sum(1 for check in checks.values() if check['passed'])
        self.logger.info(f"Technical checks for {domain}: {score}/{MAX_TECHNICAL_SCORE}")

        return {
            'score': score,
            'max_score': MAX_TECHNICAL_SCORE,
            'percentage': round(score / MAX_TECHNICAL_SCORE * 100),
            'checks': checks,
            'summary': f"{passed}/{len(checks)} checks passed",
        }

    async def check_https(self, domain: str) -> bool:
        status = await self._head_status(f"https://{domain}", HTTPS_TIMEOUT)
        return status is not None and status < 400

    async def check_robots_txt(self, domain: str) -> bool:
        status = await self._head_status(f"https://{domain}/robots.txt", ROBOTS_TIMEOUT)
        return status is not None and 200 <= status < 300

    async def check_sitemap(self, domain: str) -> bool:
        for url in self.sitemap_candidates(domain):
            status = await self._head_status(url, SITEMAP_TIMEOUT)
            if status is not None and 200 <= status < 300:
                self.logger.info(f"Sitemap found at {url}")
                return True
        return False

    @staticmethod
    def sitemap_candidates(domain: str) -> List[str]:
        return [
            f"https://{domain}/sitemap.xml",
            f"https://{domain}/sitemap_index.xml",
            f"https://www.{domain}/sitemap.xml",
        ]

    async def _head_status(self, url: str, timeout: float):
        """HEAD request status code, or None on timeout or transport error."""
        session = await self._ensure_session()
        try:
            async with session.head(url, timeout=self.client_timeout(timeout),
                                    allow_redirects=True, headers={'User-Agent': USER_AGENT}) as response:
                return response.status
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            self.logger.debug(f"HEAD {url} failed: {e}")
            return None
