"""URL canonicalization and domain helpers."""

import re
import urllib.parse

import tldextract

from emailscrape.errors import MalformedURL

# Bundled public suffix snapshot only, never fetched over the network.
_extract = tldextract.TLDExtract(suffix_list_urls=())

_SCHEME_RE = re.compile(r'^[a-zA-Z][a-zA-Z0-9+.-]*://')
# mailto:, tel:, javascript: ... but not host:port
_OPAQUE_SCHEME_RE = re.compile(r'^[a-zA-Z][a-zA-Z0-9+.-]*:(?![0-9])')
_DEFAULT_PORTS = {'http': 80, 'https': 443}

SKIP_PATTERNS = [
    r'cdn-cgi/l/email-protection',  # Cloudflare email protection
]

ASSET_EXTENSIONS = (
    '.pdf',
    '.jpg', '.jpeg', '.png', '.gif', '.svg', '.webp', '.ico',
    '.css', '.js',
    '.zip', '.rar', '.gz', '.exe',
    '.mp3', '.mp4', '.avi', '.mov',
)


def has_scheme(raw):
    return bool(_SCHEME_RE.match(raw.strip()))


def normalize_url(raw, base=None):
    """Return the canonical absolute form of ``raw``.

    Relative links are resolved against ``base``. Without a base, a missing
    scheme is taken to be ``https``. The fragment, default port and trailing
    slashes are dropped; scheme and host are lowercased. Raises
    ``MalformedURL`` for anything that is not an http(s) URL with a host.
    """
    if raw is None or not raw.strip():
        raise MalformedURL("empty URL")
    candidate = raw.strip()
    if not base and not has_scheme(candidate) and _OPAQUE_SCHEME_RE.match(candidate):
        raise MalformedURL(f"{raw!r}: unsupported scheme")

    try:
        if base:
            candidate = urllib.parse.urljoin(base, candidate)
        elif candidate.startswith('//'):
            candidate = 'https:' + candidate
        elif not has_scheme(candidate):
            candidate = 'https://' + candidate

        parsed = urllib.parse.urlsplit(candidate)
        scheme = parsed.scheme.lower()
        host = parsed.hostname
        port = parsed.port
    except ValueError as e:
        raise MalformedURL(f"{raw!r}: {e}") from e

    if scheme not in _DEFAULT_PORTS:
        raise MalformedURL(f"{raw!r}: unsupported scheme {scheme!r}")
    if not host:
        raise MalformedURL(f"{raw!r}: missing host")

    netloc = host
    if ':' in host:  # IPv6 literal
        netloc = f'[{host}]'
    if port is not None and port != _DEFAULT_PORTS[scheme]:
        netloc = f'{netloc}:{port}'
    userinfo = parsed.netloc.rpartition('@')[0] if '@' in parsed.netloc else ''
    if userinfo:
        netloc = f'{userinfo}@{netloc}'

    return urllib.parse.urlunsplit((
        scheme,
        netloc,
        parsed.path.rstrip('/'),
        parsed.query,
        ''  # fragment
    ))


def strip_www(host):
    host = (host or '').strip().lower().rstrip('.')
    if host.startswith('www.'):
        host = host[4:]
    return host


def registered_domain(url):
    """Registrable domain of the URL's host, e.g. ``example.co.uk``."""
    if not has_scheme(url) and not url.startswith('//'):
        url = 'https://' + url.strip()
    try:
        host = urllib.parse.urlsplit(url).hostname or ''
    except ValueError:
        host = ''
    extracted = _extract(host)
    if extracted.domain and extracted.suffix:
        return f"{extracted.domain}.{extracted.suffix}".lower()
    return strip_www(host)


def should_skip_url(url):
    """Check if URL points at something that is never crawlable HTML"""
    url_lower = url.lower()
    if any(re.search(pattern, url_lower) for pattern in SKIP_PATTERNS):
        return True
    path = urllib.parse.urlsplit(url_lower).path
    return path.endswith(ASSET_EXTENSIONS)
