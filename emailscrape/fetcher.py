"""Page fetching: the port the crawl engine talks to and its requests implementation."""

import codecs
import logging
import time

import requests
from requests.adapters import HTTPAdapter
import urllib3

from emailscrape.errors import ConnectionFailed, FetchTimeout, HTTPStatusError, TooLarge
from emailscrape.models import Page

logger = logging.getLogger(__name__)

CHUNK_SIZE = 64 * 1024


class Fetcher:
    """Fetch a URL within ``deadline`` seconds.

    Implementations return a :class:`Page` or raise a
    :class:`~emailscrape.errors.FetchError` subclass. They must be safe to call
    from several worker threads at once.
    """

    def fetch(self, url, deadline):
        raise NotImplementedError

    def close(self):
        pass

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()


class RequestsFetcher(Fetcher):
    """Fetcher backed by a shared :class:`requests.Session`.

    With ``http_fallback`` an ``https://`` URL that cannot be reached is
    retried once over plain ``http://`` inside the same deadline.
    """

    def __init__(self, config, http_fallback=False):
        self.config = config
        self.http_fallback = http_fallback
        self.max_bytes = config.MAX_PAGE_BYTES
        self.session = self._create_session()

    def _create_session(self):
        session = requests.Session()
        session.headers.update({
            'User-Agent': self.config.USER_AGENT,
            'Accept': 'text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8',
        })

        proxy = self.config.proxy
        if proxy:
            session.proxies = {'http': proxy, 'https': proxy}

        session.verify = self.config.VERIFY_TLS
        if not self.config.VERIFY_TLS:
            urllib3.disable_warnings(urllib3.exceptions.InsecureRequestWarning)

        # One connection per worker at least.
        adapter = HTTPAdapter(pool_maxsize=max(10, self.config.MAX_THREADS))
        session.mount('http://', adapter)
        session.mount('https://', adapter)
        return session

    def fetch(self, url, deadline):
        expires = time.monotonic() + deadline
        try:
            return self._get(url, expires)
        except (ConnectionFailed, FetchTimeout) as e:
            if not (self.http_fallback and url.startswith('https://')):
                raise
            if time.monotonic() >= expires:
                raise
            fallback = 'http://' + url[len('https://'):]
            logger.debug("%s; retrying over plain http: %s", e, fallback)
            return self._get(fallback, expires)

    def _get(self, url, expires):
        remaining = expires - time.monotonic()
        if remaining <= 0:
            raise FetchTimeout(url)

        try:
            response = self.session.get(url, timeout=remaining, stream=True, allow_redirects=True)
        except requests.Timeout as e:
            raise FetchTimeout(url) from e
        except requests.RequestException as e:
            raise ConnectionFailed(url, f"Connection failed: {url} ({e})") from e

        with response:
            if response.status_code >= 400:
                raise HTTPStatusError(url, response.status_code)

            content_type = response.headers.get('Content-Type', '').lower()
            final_url = response.url or url
            if content_type and 'html' not in content_type and 'text' not in content_type:
                logger.debug("Skipping non-HTML content at %s: %s", final_url, content_type)
                return Page(url=final_url, text='', status=response.status_code)

            declared = response.headers.get('Content-Length')
            if declared and declared.isdigit() and int(declared) > self.max_bytes:
                raise TooLarge(url, self.max_bytes)

            body = self._read_body(response, url, expires)

        encoding = response.encoding if 'charset' in content_type else None
        return Page(url=final_url, text=_decode(body, encoding), status=response.status_code)

    def _read_body(self, response, url, expires):
        chunks = []
        total = 0
        try:
            for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
                total += len(chunk)
                if total > self.max_bytes:
                    raise TooLarge(url, self.max_bytes)
                if time.monotonic() > expires:
                    raise FetchTimeout(url)
                chunks.append(chunk)
        except requests.RequestException as e:
            raise ConnectionFailed(url, f"Read failed: {url} ({e})") from e
        return b''.join(chunks)

    def close(self):
        self.session.close()


def _decode(body, encoding):
    if encoding:
        try:
            codecs.lookup(encoding)
        except LookupError:
            encoding = None
    return body.decode(encoding or 'utf-8', errors='replace')
