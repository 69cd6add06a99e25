import re
import json
import math
import asyncio
from datetime import datetime, timezone
from typing import Dict, Any, List, Optional, Tuple

import aiohttp

from domain_utils import registrable_domain
from scan_config import get_credential, WHOIS_API_KEY
from seo_probes.base import BaseProbe
from seo_probes.fallback import first_successful

WHOIS_COMMAND_TIMEOUT = 30
WHOIS_API_TIMEOUT = 15
WHOIS_API_URL = 'https://www.whoisxmlapi.com/whoisserver/WhoisService'
DAYS_PER_YEAR = 365.25

# Checked in order; the first pattern that matches a field wins
WHOIS_FIELD_PATTERNS: List[Tuple[str, re.Pattern]] = [
    ('creation_date', re.compile(r'Creation Date:\s*(.+)', re.IGNORECASE)),
    ('creation_date', re.compile(r'Created Date:\s*(.+)', re.IGNORECASE)),
    ('creation_date', re.compile(r'Domain Name Commencement Date:\s*(.+)', re.IGNORECASE)),
    ('creation_date', re.compile(r'Created:\s*(.+)', re.IGNORECASE)),
    ('creation_date', re.compile(r'Registration Date:\s*(.+)', re.IGNORECASE)),
    ('creation_date', re.compile(r'created:\s*(.+)', re.IGNORECASE)),
    ('expiry_date', re.compile(r'Registry Expiry Date:\s*(.+)', re.IGNORECASE)),
    ('expiry_date', re.compile(r'Expiration Date:\s*(.+)', re.IGNORECASE)),
    ('expiry_date', re.compile(r'Expiry Date:\s*(.+)', re.IGNORECASE)),
    ('expiry_date', re.compile(r'Expires:\s*(.+)', re.IGNORECASE)),
    ('expiry_date', re.compile(r'paid-till:\s*(.+)', re.IGNORECASE)),
    ('registrar', re.compile(r'Registrar:\s*(.+)', re.IGNORECASE)),
    ('registrar', re.compile(r'Sponsoring Registrar:\s*(.+)', re.IGNORECASE)),
    ('registrar', re.compile(r'registrar:\s*(.+)', re.IGNORECASE)),
]

DATE_FORMATS = (
    '%Y-%m-%dT%H:%M:%SZ',
    '%Y-%m-%dT%H:%M:%S.%fZ',
    '%Y-%m-%d %H:%M:%S',
    '%Y-%m-%d',
    '%Y.%m.%d',
    '%Y/%m/%d',
    '%d-%b-%Y',
    '%d-%B-%Y',
    '%d.%m.%Y',
    '%d/%m/%Y',
    '%b %d %Y',
    '%a %b %d %H:%M:%S %Z %Y',
)


def empty_whois_record() -> Dict[str, Any]:
    return {'creation_date': None, 'expiry_date': None, 'registrar': None, 'age_years': None}


def parse_whois_output(output: str) -> Dict[str, Any]:
    record = empty_whois_record()
    if not output:
        return record
    for field_name, pattern in WHOIS_FIELD_PATTERNS:
        if record[field_name]:
            continue
        match = pattern.search(output)
        if match:
            record[field_name] = match.group(1).strip()
    return record


def parse_registry_date(value: Optional[str]) -> Optional[datetime]:
    """Registries disagree on date formats; returns an aware UTC datetime or None."""
    if not value:
        return None
    text = value.strip()
    try:
        parsed = datetime.fromisoformat(text.replace('Z', '+00:00'))
    except ValueError:
        parsed = None
        # Drop trailing timezone words such as "(UTC)" or " UTC" before trying formats
        candidate = re.sub(r'\s*\(?UTC\)?$', '', text)
        for fmt in DATE_FORMATS:
            try:
                parsed = datetime.strptime(candidate, fmt)
                break
            except ValueError:
                continue
    if parsed is None:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def calculate_age_years(creation_date: Optional[str], now: Optional[datetime] = None) -> Optional[int]:
    created = parse_registry_date(creation_date)
    if created is None:
        return None
    now = now or datetime.now(timezone.utc)
    age_days = (now - created).total_seconds() / 86400
    return int(math.floor(age_days / DAYS_PER_YEAR))


class WhoisFetcher(BaseProbe):
    """Registration data for a domain: the whois binary first, then the WhoisXML API."""

    def __init__(self, session: Optional[aiohttp.ClientSession] = None, timeout: float = WHOIS_API_TIMEOUT):
        super().__init__(session=session, timeout=timeout)

    async def fetch(self, domain: str) -> Dict[str, Any]:
        clean_domain = registrable_domain(domain)
        self.logger.info(f"Fetching WHOIS for domain: {clean_domain}")

        record = await first_successful([
            ('whois command', lambda: self._lookup_via_command(clean_domain)),
            ('whois api', lambda: self._lookup_via_api(clean_domain)),
        ], label=f"WHOIS {clean_domain}")

        if record is None:
            return empty_whois_record()

        record['age_years'] = calculate_age_years(record.get('creation_date'))
        return record

    async def _lookup_via_command(self, domain: str) -> Optional[Dict[str, Any]]:
        output = await self._run_whois_command(domain)
        if not output:
            return None
        record = parse_whois_output(output)
        if not any(record[name] for name in ('creation_date', 'expiry_date', 'registrar')):
            return None
        return record

    async def _run_whois_command(self, domain: str) -> Optional[str]:
        try:
            process = await asyncio.create_subprocess_exec(
                'whois', domain,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except (FileNotFoundError, PermissionError) as e:
            self.logger.warning(f"WHOIS command unavailable ({e}), trying API fallback")
            return None

        try:
            stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=WHOIS_COMMAND_TIMEOUT)
        except asyncio.TimeoutError:
            process.kill()
            await process.wait()
            self.logger.warning(f"WHOIS command timed out for {domain}")
            return None

        if stderr and not stdout:
            self.logger.warning(f"WHOIS stderr: {stderr.decode(errors='replace')[:200]}")
        return stdout.decode(errors='replace') if stdout else None

    async def _lookup_via_api(self, domain: str) -> Optional[Dict[str, Any]]:
        api_key = get_credential(WHOIS_API_KEY)
        if not api_key:
            self.logger.info("WHOIS_API_KEY not configured, skipping WHOIS API")
            return None

        session = await self._ensure_session()
        params = {'apiKey': api_key, 'domainName': domain, 'outputFormat': 'JSON'}
        try:
            async with session.get(WHOIS_API_URL, params=params,
                                   timeout=self.client_timeout(WHOIS_API_TIMEOUT)) as response:
                if response.status != 200:
                    self.logger.warning(f"WHOIS API returned HTTP {response.status} for {domain}")
                    return None
                payload = json.loads(await response.text())
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            self.logger.error(f"WHOIS API request error: {e}")
            return None
        except ValueError as e:
            self.logger.error(f"WHOIS API parse error: {e}")
            return None

        return parse_whois_api_record(payload)


def parse_whois_api_record(payload: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    record = payload.get('WhoisRecord') if isinstance(payload, dict) else None
    if not record:
        return None
    registry = record.get('registryData') or {}
    result = empty_whois_record()
    result['creation_date'] = record.get('createdDate') or registry.get('createdDate')
    result['expiry_date'] = record.get('expiresDate') or registry.get('expiresDate')
    result['registrar'] = record.get('registrarName') or record.get('registrarIANAID')
    return result
