"""Scan orchestration: runs every probe for one URL and records progress.

Each probe is fault-isolated and degrades to "no data"; only an unreachable
target or an unexpected error ends a scan as FAILED.
"""
import asyncio
import logging
from typing import List, Optional

import aiohttp

from data_access import mark_scan_complete, mark_scan_failed, mark_scan_scanning, update_scan_progress
from domain_utils import brand_name, extract_domain, normalize_url
from exceptions import TargetUnreachableError
from health_scoring import aggregate_scan_result
from keyword_extractor import extract_keywords
from keyword_intelligence import KeywordIntelligence, build_keyword_set
from models import Scan, ScanResult
from seo_probes.base import USER_AGENT
from seo_probes.browser import BrowserResource
from seo_probes.html_fetcher import HtmlFetcher
from seo_probes.keyword_planner import KeywordPlannerClient
from seo_probes.knowledge_graph import KnowledgeGraphClient
from seo_probes.natural_language import NaturalLanguageClient
from seo_probes.pagespeed_checker import PageSpeedChecker
from seo_probes.serp_api import SerpApiClient
from seo_probes.technical_checker import TechnicalChecker
from seo_probes.whois_fetcher import WhoisFetcher

logger = logging.getLogger('seo_health')

SESSION_TIMEOUT = 120


class SeoScanOrchestrator:
    """Drives one scan from SCANNING to COMPLETE or FAILED."""

    def __init__(self, browser: Optional[BrowserResource] = None):
        self.browser = browser

    async def execute(self, scan_id: str, url: str, seed_keywords: Optional[List[str]] = None) -> Scan:
        url = normalize_url(url)
        domain = extract_domain(url)
        mark_scan_scanning(scan_id)
        logger.info(f"Starting SEO scan {scan_id} for {domain}")

        try:
            result = await self._run(scan_id, url, domain, seed_keywords)
            logger.info(f"Scan {scan_id} complete: health score {result.health_score}")
            return mark_scan_complete(scan_id, result.to_dict())
        except TargetUnreachableError as e:
            logger.error(f"Scan {scan_id} failed: {e}")
            return mark_scan_failed(scan_id, str(e))
        except Exception as e:
            logger.error(f"Unexpected error in scan {scan_id}: {str(e)}", exc_info=True)
            return mark_scan_failed(scan_id, f"Scan failed: {str(e)}")

    async def _run(self, scan_id: str, url: str, domain: str,
                   seed_keywords: Optional[List[str]]) -> ScanResult:
        timeout = aiohttp.ClientTimeout(total=SESSION_TIMEOUT)
        async with aiohttp.ClientSession(timeout=timeout, headers={'User-Agent': USER_AGENT}) as session:
            update_scan_progress(scan_id, 5, 'Fetching page content')
            page = await HtmlFetcher(session, browser=self.browser).fetch(url)

            update_scan_progress(scan_id, 15, 'Checking technical SEO and performance')
            technical, insights = await asyncio.gather(
                TechnicalChecker(session).check(domain),
                PageSpeedChecker(session).get_insights(url),
            )
            if page is None and not technical['checks']['https']['passed']:
                raise TargetUnreachableError(url)

            update_scan_progress(scan_id, 30, 'Analyzing domain authority')
            domain_age, entity = await asyncio.gather(
                WhoisFetcher(session).fetch(domain),
                KnowledgeGraphClient(session).verify_entity(brand_name(domain)),
            )

            update_scan_progress(scan_id, 40, 'Analyzing website content')
            language = NaturalLanguageClient(session)
            text = page.text if page else None
            entities, sentiment = await asyncio.gather(
                language.analyze_entities(text),
                language.analyze_sentiment(text),
            )

            update_scan_progress(scan_id, 50, 'Extracting keywords from page')
            observed_keywords = extract_keywords(page.html if page else None)
            keywords = build_keyword_set(observed_keywords, seed_keywords, domain)
            logger.info(f"Found {len(observed_keywords)} page keywords, checking {len(keywords)}")

            update_scan_progress(scan_id, 55, 'Checking SERP positions')
            intelligence = KeywordIntelligence(SerpApiClient(session))
            report = await intelligence.collect(domain, keywords)

            update_scan_progress(scan_id, 75, 'Comparing SERP competitors')
            if report.serp_results:
                intelligence.compare(domain, report)
            search_volumes = await KeywordPlannerClient(session).get_keyword_metrics(keywords)

            update_scan_progress(scan_id, 85, 'Checking regional and device rankings')
            if report.serp_results:
                await intelligence.compare_locations_and_devices(domain, report)

            update_scan_progress(scan_id, 95, 'Calculating health score')
            return aggregate_scan_result(
                domain,
                technical=technical,
                insights=insights,
                domain_age=domain_age,
                entity=entity,
                entities=entities,
                sentiment=sentiment,
                observed_keywords=observed_keywords,
                intelligence=report,
                search_volumes=search_volumes,
            )


async def execute_seo_scan(scan_id: str, url: str, seed_keywords: Optional[List[str]] = None,
                           browser: Optional[BrowserResource] = None) -> Scan:
    return await SeoScanOrchestrator(browser=browser).execute(scan_id, url, seed_keywords)
