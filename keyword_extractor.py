import re
from typing import List, Optional

from bs4 import BeautifulSoup

MIN_CONTENT_LENGTH = 100
MAX_KEYWORDS = 30
MAX_SINGLE_KEYWORDS = 15

STOP_WORDS = {
    'the', 'and', 'for', 'with', 'from', 'that', 'this', 'have', 'been', 'will',
    'your', 'their', 'about', 'more', 'into', 'through', 'during', 'before',
    'after', 'above', 'below', 'between',
}

GENERIC_PHRASES = {
    'home page', 'click here', 'read more', 'learn more', 'contact us',
    'about us', 'sign in', 'log in', 'sign up', 'get started',
}


class _KeywordCollector:
    """Ordered phrase and single-word sets, filled source by source."""

    def __init__(self):
        self.phrases = {}
        self.single_keywords = {}

    def add_phrase(self, phrase: str) -> bool:
        if phrase in self.phrases:
            return False
        self.phrases[phrase] = None
        return True

    def add_single(self, word: str) -> None:
        self.single_keywords.setdefault(word, None)

    def add_from_text(self, text: str, max_phrases: int) -> None:
        # max_phrases bounds the phrases this one source contributes
        cleaned = re.sub(r'[^\w\s]', ' ', text.lower())
        cleaned = re.sub(r'\s+', ' ', cleaned).strip()
        words = [word for word in cleaned.split(' ') if len(word) >= 3 and word not in STOP_WORDS]
        added = 0

        for i in range(len(words) - 1):
            if added >= max_phrases:
                break
            phrase = f"{words[i]} {words[i + 1]}"
            if 8 <= len(phrase) <= 40 and self.add_phrase(phrase):
                added += 1

        for i in range(len(words) - 2):
            if added >= max_phrases:
                break
            phrase = f"{words[i]} {words[i + 1]} {words[i + 2]}"
            if 12 <= len(phrase) <= 50 and self.add_phrase(phrase):
                added += 1

        for word in words:
            if 4 <= len(word) <= 20:
                self.add_single(word)

    def keywords(self) -> List[str]:
        candidates = list(self.phrases) + list(self.single_keywords)[:MAX_SINGLE_KEYWORDS]
        filtered = [keyword for keyword in candidates if keyword not in GENERIC_PHRASES]
        return list(dict.fromkeys(filtered))[:MAX_KEYWORDS]


def _meta_content(soup: BeautifulSoup, name: str) -> Optional[str]:
    meta = soup.find('meta', attrs={'name': re.compile(f'^{name}$', re.IGNORECASE)})
    content = meta.get('content') if meta else None
    return content.strip() if content else None


def extract_keywords(html: Optional[str]) -> List[str]:
    """Keyword phrases the page itself targets, from its metadata, headings and labels."""
    if not html or len(html) < MIN_CONTENT_LENGTH:
        return []

    soup = BeautifulSoup(html, 'html.parser')
    collector = _KeywordCollector()

    meta_keywords = _meta_content(soup, 'keywords')
    if meta_keywords:
        for keyword in meta_keywords.split(','):
            cleaned = keyword.strip().lower()
            if 8 <= len(cleaned) <= 50 and ' ' in cleaned:
                collector.add_phrase(cleaned)
            elif 4 <= len(cleaned) <= 20:
                collector.add_single(cleaned)

    meta_description = _meta_content(soup, 'description')
    if meta_description:
        collector.add_from_text(meta_description, 5)

    if soup.title and soup.title.get_text(strip=True):
        collector.add_from_text(soup.title.get_text(strip=True), 5)

    for h1 in soup.find_all('h1'):
        collector.add_from_text(h1.get_text(' ', strip=True), 3)

    for h2 in soup.find_all('h2')[:5]:
        collector.add_from_text(h2.get_text(' ', strip=True), 2)

    for element in soup.find_all(alt=True)[:10]:
        if element['alt'].strip():
            collector.add_from_text(element['alt'], 2)

    for element in soup.find_all(attrs={'aria-label': True})[:10]:
        if element['aria-label'].strip():
            collector.add_from_text(element['aria-label'], 2)

    return collector.keywords()
