"""Decide whether an email address belongs to the crawled site's domain."""

from emailscrape.models import EmailRecord
from emailscrape.urls import registered_domain, strip_www


def email_domain(address):
    return strip_www(address.rpartition('@')[2])


def is_match(address, seed_domain):
    """Case-insensitive equality of the address's domain with ``seed_domain``.

    A leading ``www.`` is ignored on both sides.
    """
    if '@' not in address:
        return False
    domain = email_domain(address)
    return bool(domain) and domain == strip_www(seed_domain)


class DomainClassifier:
    def __init__(self, seed_url):
        self.seed_url = seed_url
        self.seed_domain = registered_domain(seed_url)

    def is_match(self, address):
        return is_match(address, self.seed_domain)

    def classify(self, address, source_url):
        return EmailRecord(
            address=address,
            source_url=source_url,
            is_domain_match=self.is_match(address),
        )
