"""Exceptions raised by the crawl engine and its collaborators."""


class MalformedURL(ValueError):
    """Raised when a link cannot be turned into an absolute http(s) URL."""


class FetchError(Exception):
    """Base class for every way a page fetch can fail."""

    def __init__(self, url, message=None):
        self.url = url
        super().__init__(message or f"{self.__class__.__name__}: {url}")


class FetchTimeout(FetchError):
    pass


class ConnectionFailed(FetchError):
    pass


class HTTPStatusError(FetchError):
    def __init__(self, url, status):
        self.status = status
        super().__init__(url, f"HTTP {status}: {url}")


class TooLarge(FetchError):
    def __init__(self, url, limit):
        self.limit = limit
        super().__init__(url, f"Body exceeds {limit} bytes: {url}")
