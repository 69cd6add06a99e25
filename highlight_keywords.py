"""Keyword highlighting for generated article text.

Pure text in, text out. Placements are chosen first against the original
offsets, then the markup is inserted from the end of the text backwards so no
offset ever needs adjusting.
"""
import re
import logging
from typing import List, Optional, Tuple

from models import HighlightPlacement

logger = logging.getLogger('seo_health')

WORDS_PER_HIGHLIGHT = 175
MAX_HIGHLIGHTS = 12
MAX_PER_KEYWORD = 2
MIN_HIGHLIGHT_DISTANCE = 200

MARK_OPEN = '<mark style="background-color: #FFF4E6; padding: 2px 4px; border-radius: 3px;">'
MARK_CLOSE = '</mark>'

PARAGRAPH_BREAK = re.compile(r'\n\s*\n')
OPEN_TAG_BEFORE = re.compile(r'<[A-Za-z/!][^<>\n]*$')


def target_highlight_count(word_count: int) -> int:
    return max(0, min(int(word_count or 0) // WORDS_PER_HIGHLIGHT, MAX_HIGHLIGHTS))


def keyword_pattern(keyword: str) -> re.Pattern:
    """Whole-word, case-insensitive match for a literal keyword."""
    return re.compile(rf'(?<!\w){re.escape(keyword)}(?!\w)', re.IGNORECASE)


def paragraph_starts(content: str) -> List[int]:
    return [0] + [match.end() for match in PARAGRAPH_BREAK.finditer(content)]


def paragraph_index(starts: List[int], offset: int) -> int:
    index = 0
    for i, start in enumerate(starts):
        if start > offset:
            break
        index = i
    return index


def line_at(content: str, offset: int) -> str:
    start = content.rfind('\n', 0, offset) + 1
    end = content.find('\n', offset)
    return content[start:] if end == -1 else content[start:end]


def inside_tag(content: str, offset: int) -> bool:
    """True when the offset sits inside an unclosed tag such as `<a href="...`; a bare `<` in prose is text."""
    return OPEN_TAG_BEFORE.search(content, 0, offset) is not None


def inside_mark(content: str, offset: int) -> bool:
    before = content[:offset].lower()
    return before.count('<mark') > before.count(MARK_CLOSE)


def is_eligible(content: str, start: int, end: int) -> bool:
    line = line_at(content, start)
    if line.lstrip().startswith('#') or '|' in line:
        return False
    if inside_tag(content, start) or inside_mark(content, start):
        return False
    return '\n' not in content[start:end]


def plan_highlights(content: str, keywords: List[str], word_count: int) -> List[HighlightPlacement]:
    """Pick where highlights go without touching the text.

    Keywords are taken in ranking order. A placement needs a paragraph that has
    none yet and at least MIN_HIGHLIGHT_DISTANCE characters to every other
    placement. Selection stops at the target count.
    """
    target = target_highlight_count(word_count)
    placements: List[HighlightPlacement] = []
    if not content or not keywords or target == 0:
        return placements

    starts = paragraph_starts(content)
    used_paragraphs = set()

    for keyword_index, keyword in enumerate(keywords):
        if len(placements) >= target:
            break
        keyword = (keyword or '').strip()
        if not keyword:
            continue

        per_keyword = 0
        for match in keyword_pattern(keyword).finditer(content):
            if per_keyword >= MAX_PER_KEYWORD or len(placements) >= target:
                break
            start, end = match.span()
            paragraph = paragraph_index(starts, start)
            if paragraph in used_paragraphs:
                continue
            if any(abs(start - placement.char_offset) < MIN_HIGHLIGHT_DISTANCE for placement in placements):
                continue
            if not is_eligible(content, start, end):
                continue

            placements.append(HighlightPlacement(
                keyword_index=keyword_index,
                char_offset=start,
                paragraph_index=paragraph,
                length=end - start,
            ))
            used_paragraphs.add(paragraph)
            per_keyword += 1

    return placements


def apply_highlights(content: str, placements: List[HighlightPlacement]) -> str:
    result = content
    for placement in sorted(placements, key=lambda p: p.char_offset, reverse=True):
        start = placement.char_offset
        end = start + placement.length
        result = result[:start] + MARK_OPEN + result[start:end] + MARK_CLOSE + result[end:]
    return result


def highlight_keywords_with_placements(content: Optional[str], keywords: Optional[List[str]],
                                       word_count: int) -> Tuple[str, List[HighlightPlacement]]:
    if not content or not keywords:
        logger.warning('No content or keywords for highlighting')
        return content or '', []

    placements = plan_highlights(content, keywords, word_count)
    logger.info(f"Highlighted {len(placements)} keywords out of target {target_highlight_count(word_count)}")
    return apply_highlights(content, placements), placements


def highlight_keywords(content: Optional[str], keywords: Optional[List[str]], word_count: int) -> str:
    return highlight_keywords_with_placements(content, keywords, word_count)[0]
