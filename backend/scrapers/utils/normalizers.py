"""
Data normalization utilities for scrapers.

These functions standardize scraped text into consistent formats.
"""

import hashlib
import re
import unicodedata
from typing import Optional


def clean_text(text: Optional[str]) -> str:
    """
    Trim scraped text content. None becomes an empty string.

    Inner whitespace is left alone; values stay display strings.
    """
    if not text:
        return ''
    return text.strip()


def slugify(text: str) -> str:
    """
    Turn a listing title into a URL fragment.

    Examples:
        Transit Hub Apartment -> transit-hub-apartment
        Apt #42 - "Premium" Suite -> apt-42-premium-suite
        Café Loft -> cafe-loft
        Москва квартира -> москва-квартира

    Accents on Latin letters are dropped; other scripts are kept as is.
    A title with no letters or digits at all gets a short hash of the text.
    """
    if not text:
        return ''
    kept = []
    for ch in unicodedata.normalize('NFKD', text):
        # Accents on Latin letters fold away; other scripts keep their marks
        if unicodedata.combining(ch) and kept and kept[-1].isascii():
            continue
        kept.append(ch)
    folded = unicodedata.normalize('NFC', ''.join(kept))
    slug = re.sub(r'[\W_]+', '-', folded.lower()).strip('-')
    if slug:
        return slug
    return hashlib.sha1(text.encode('utf-8')).hexdigest()[:12]
