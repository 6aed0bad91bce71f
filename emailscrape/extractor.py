"""Link and email extraction from fetched pages."""

import logging
import re
import urllib.parse

from bs4 import BeautifulSoup

from emailscrape.errors import MalformedURL
from emailscrape.urls import normalize_url, registered_domain, should_skip_url

logger = logging.getLogger(__name__)

# List of common TLDs accepted for addresses
COMMON_TLDS = frozenset([
    "com", "org", "net", "edu", "gov", "mil", "int", "co", "io", "me", "biz",
    "info", "us", "uk", "ca", "de", "jp", "fr", "au", "ru", "ch", "it", "nl",
    "se", "no", "es", "tv", "ly",
])

ASSET_EXTENSIONS = (
    ".png", ".jpg", ".jpeg", ".gif", ".svg", ".webp", ".css", ".js", ".ico",
    ".pdf", ".zip", ".rar", ".exe",
)

SKIPPED_HREF_PREFIXES = ('#', 'mailto:', 'tel:', 'javascript:', 'data:')

EMAIL_PATTERN = re.compile(r'[a-z0-9._%+-]+@[a-z0-9-]+(?:\.[a-z0-9-]+)*\.[a-z]{2,}', re.IGNORECASE)
VALID_EMAIL_PATTERN = re.compile(r'^[a-z0-9._%+-]+@[a-z0-9-]+(?:\.[a-z0-9-]+)*\.([a-z]{2,})$', re.IGNORECASE)

_ROT13 = str.maketrans(
    'abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ',
    'nopqrstuvwxyzabcdefghijklmNOPQRSTUVWXYZABCDEFGHIJKLM',
)


def rot13(text):
    return text.translate(_ROT13)


def is_valid_email(email):
    """Syntax check plus a known top-level domain."""
    match = VALID_EMAIL_PATTERN.match(email)
    if not match:
        return False
    if '..' in email or email.startswith('.') or email.split('@')[0].endswith('.'):
        return False
    return match.group(1).lower() in COMMON_TLDS


def is_asset_filename(email):
    return email.lower().endswith(ASSET_EXTENSIONS)


def clean_candidate(raw):
    """Normalize a raw regex hit into an address, or None if it is not one.

    ROT13-obfuscated addresses (``nyvpr@rknzcyr.pbz``) are decoded when the
    literal text is not a valid address but its decoding is.
    """
    email = raw.strip()
    email = re.sub(r'^[^a-zA-Z0-9]+', '', email).lower()
    if not email or is_asset_filename(email):
        return None
    if is_valid_email(email):
        return email
    decoded = rot13(email)
    if is_valid_email(decoded) and not is_asset_filename(decoded):
        return decoded
    return None


class Extractor:
    """Turns a fetched page into outbound links and candidate addresses.

    Both methods are total: they return an empty set when nothing is found
    and never raise.
    """

    def extract_links(self, page):
        raise NotImplementedError

    def extract_emails(self, page):
        raise NotImplementedError


class HTMLExtractor(Extractor):
    def __init__(self, seed_url=None, same_domain=False):
        self.same_domain = same_domain
        self.seed_domain = registered_domain(seed_url) if seed_url else None

    def _soup(self, page):
        return BeautifulSoup(page.text, 'html.parser')

    def extract_links(self, page):
        links = set()
        if not page.text:
            return links

        for link in self._soup(page).find_all('a', href=True):
            href = link['href'].strip()
            if not href or href.lower().startswith(SKIPPED_HREF_PREFIXES):
                continue
            try:
                full_url = normalize_url(href, base=page.url)
            except MalformedURL:
                continue
            if should_skip_url(full_url):
                continue
            if self.same_domain and self.seed_domain and registered_domain(full_url) != self.seed_domain:
                continue
            links.add(full_url)

        return links

    def extract_emails(self, page):
        emails = set()
        if not page.text:
            return emails

        candidates = EMAIL_PATTERN.findall(page.text)

        # mailto links may be percent-encoded
        for link in self._soup(page).find_all('a', href=True):
            href = link['href'].strip()
            if href.lower().startswith('mailto:'):
                target = urllib.parse.unquote(href[7:].split('?')[0])
                candidates.extend(address for address in target.split(',') if address)

        for raw in candidates:
            email = clean_candidate(raw)
            if email:
                emails.add(email)

        return emails
