"""Console output and on-disk reports."""

import json
import os
import threading
from datetime import datetime

from colorama import Fore, Style, init

# Initialize colorama
init(autoreset=True)

_print_lock = threading.Lock()


class ColorOutput:
    use_color = True

    @classmethod
    def _emit(cls, color, tag, msg):
        with _print_lock:
            if cls.use_color:
                print(f"{color}{tag}{Style.RESET_ALL} {msg}" if tag else f"{color}{msg}{Style.RESET_ALL}", flush=True)
            else:
                print(f"{tag} {msg}" if tag else msg, flush=True)

    @classmethod
    def info(cls, msg):
        cls._emit(Fore.CYAN, "[INFO]", msg)

    @classmethod
    def success(cls, msg):
        cls._emit(Fore.GREEN, "[SUCCESS]", msg)

    @classmethod
    def warning(cls, msg):
        cls._emit(Fore.YELLOW, "[WARNING]", msg)

    @classmethod
    def error(cls, msg):
        cls._emit(Fore.RED, "[ERROR]", msg)

    @classmethod
    def stats(cls, msg):
        cls._emit(Fore.MAGENTA, "[STATS]", msg)

    @classmethod
    def email(cls, address, matches_domain):
        # Plain address, no tag: the output is meant to be piped.
        cls._emit(Fore.GREEN if matches_domain else Fore.WHITE, "", address)


class EmailPrinter:
    """``on_email`` callback printing each new record as it is confirmed."""

    def __init__(self, strict=False):
        self.strict = strict

    def __call__(self, record):
        if self.strict and not record.is_domain_match:
            return
        ColorOutput.email(record.address, record.is_domain_match)


def print_summary(result):
    """Print crawling summary"""
    ColorOutput.info(f"Finished scraping. Found {len(result.emails)} emails.")
    if result.timed_out:
        ColorOutput.warning("Run timeout reached; results are partial")
    ColorOutput.stats(f"Pages Crawled: {result.stats.get('pages_fetched', 0)}")
    ColorOutput.stats(f"Failed Fetches: {result.stats.get('fetch_failures', 0)}")
    ColorOutput.stats(f"Crawl Duration: {result.duration:.2f} seconds")

    emails = result.emails
    if emails:
        domains = {}
        for record in emails:
            domain = record.address.split('@')[1]
            domains[domain] = domains.get(domain, 0) + 1
        for domain, count in sorted(domains.items(), key=lambda x: x[1], reverse=True):
            ColorOutput.stats(f"  {domain}: {count} emails")


def write_report(result, output_file):
    """Write a JSON report and a sibling .txt list of addresses. Returns both paths."""
    directory = os.path.dirname(output_file)
    if directory:
        os.makedirs(directory, exist_ok=True)

    report = {
        'target': result.seed_url,
        'target_domain': result.seed_domain,
        'state': result.state.value,
        'strict': result.strict,
        'emails': [
            {
                'address': record.address,
                'source_url': record.source_url,
                'domain_match': record.is_domain_match,
            }
            for record in result.emails
        ],
        'crawled_urls': result.visited,
        'stats': dict(result.stats, duration_seconds=round(result.duration, 3)),
        'crawl_completed': datetime.now().isoformat(),
    }

    with open(output_file, 'w', encoding='utf-8') as f:
        json.dump(report, f, indent=2, ensure_ascii=False, default=str)

    root, _ext = os.path.splitext(output_file)
    txt_file = root + '.txt'
    if txt_file == output_file:
        txt_file = output_file + '.txt'
    with open(txt_file, 'w', encoding='utf-8') as f:
        f.write("# EmailScrape Results\n")
        f.write(f"# Target: {result.seed_url}\n")
        f.write(f"# Date: {datetime.now().isoformat()}\n")
        f.write(f"# Emails Found: {len(result.emails)}\n")
        f.write(f"# Pages Crawled: {result.stats.get('pages_fetched', 0)}\n")
        f.write("#" * 50 + "\n\n")
        for record in result.emails:
            f.write(f"{record.address}\n")

    return output_file, txt_file
