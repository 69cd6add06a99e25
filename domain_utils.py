from urllib.parse import urlparse
import tldextract

# Offline extractor: the bundled public suffix snapshot is enough for host splitting
_extractor = tldextract.TLDExtract(suffix_list_urls=())


def normalize_url(url: str) -> str:
    """Normalize URL format"""
    url = (url or '').strip()
    if not url.startswith(('http://', 'https://')):
        return f'https://{url}'
    return url


def extract_domain(url: str) -> str:
    """Hostname without scheme, port, path or a leading www."""
    netloc = urlparse(normalize_url(url)).netloc.lower()
    netloc = netloc.split('@')[-1].split(':')[0]
    if netloc.startswith('www.'):
        netloc = netloc[4:]
    return netloc


def registrable_domain(url_or_domain: str) -> str:
    """example.co.uk for blog.example.co.uk; falls back to the host itself."""
    host = extract_domain(url_or_domain)
    parts = _extractor(host)
    if parts.domain and parts.suffix:
        return f"{parts.domain}.{parts.suffix}"
    return host


def brand_name(url_or_domain: str) -> str:
    """First label of the registrable domain, used as the entity query."""
    host = extract_domain(url_or_domain)
    parts = _extractor(host)
    return parts.domain or host.split('.')[0]
