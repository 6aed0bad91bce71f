"""Command line entry point."""

import argparse
import logging
import sys

from emailscrape import __version__
from emailscrape.config import Config
from emailscrape.crawler import CrawlController
from emailscrape.errors import MalformedURL
from emailscrape.extractor import HTMLExtractor
from emailscrape.fetcher import RequestsFetcher
from emailscrape.models import RunConfig, RunState, check_seconds
from emailscrape.output import ColorOutput, EmailPrinter, print_summary, write_report
from emailscrape.urls import has_scheme, normalize_url

EXIT_INTERRUPTED = 130


def non_negative_int(value):
    try:
        number = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"must be a whole number, got {value!r}")
    if number < 0:
        raise argparse.ArgumentTypeError(f"must be >= 0, got {number}")
    return number


def positive_int(value):
    number = non_negative_int(value)
    if number < 1:
        raise argparse.ArgumentTypeError(f"must be >= 1, got {number}")
    return number


def _seconds(value, allow_zero):
    try:
        number = float(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"must be a number, got {value!r}")
    try:
        check_seconds('duration', number, allow_zero=allow_zero)
    except ValueError as e:
        raise argparse.ArgumentTypeError(str(e))
    return number


def positive_float(value):
    return _seconds(value, allow_zero=False)


def non_negative_float(value):
    return _seconds(value, allow_zero=True)


def build_parser():
    parser = argparse.ArgumentParser(
        prog='emailscrape',
        description='Searches a website for email addresses.',
    )

    # Required arguments
    parser.add_argument('url', help='The URL to scrape (https:// is assumed when no scheme is given)')

    # Optional arguments
    parser.add_argument('-d', '--depth', type=non_negative_int, default=2, metavar='DEPTH',
                        help='Depth of recursion (default: 2)')
    parser.add_argument('-t', '--threads', type=positive_int, default=4, metavar='THREADS',
                        help='Number of threads to use (default: 4)')
    parser.add_argument('--timeout', type=positive_float, default=60, metavar='SECONDS',
                        help='Stop the crawl after this many seconds (default: 60)')
    parser.add_argument('--strict', action='store_true',
                        help='Only print emails that match the domain provided')
    parser.add_argument('--same-domain', action='store_true',
                        help="Only follow links on the target's domain")
    parser.add_argument('--max-pages', type=non_negative_int, default=0, metavar='NUM',
                        help='Maximum pages to crawl, 0 for no limit (default: 0)')
    parser.add_argument('--delay', type=non_negative_float, default=0, metavar='SECONDS',
                        help='Pause per thread between requests (default: 0)')
    parser.add_argument('--request-timeout', type=positive_float, default=None, metavar='SECONDS',
                        help='Timeout for a single request (default: 10)')
    parser.add_argument('--proxy', help='HTTP/SOCKS proxy URL')
    parser.add_argument('--insecure', action='store_true', help='Do not verify TLS certificates')
    parser.add_argument('-o', '--output', metavar='FILE',
                        help='Write a JSON report (and a .txt email list next to it)')
    parser.add_argument('--no-color', action='store_true', help='Disable colored output')
    parser.add_argument('-v', '--verbose', action='store_true', help='Log debug information')
    parser.add_argument('--version', action='version', version=f'%(prog)s {__version__}')
    return parser


def configure_logging(verbose):
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format='%(asctime)s - %(threadName)s - %(levelname)s - %(message)s',
        stream=sys.stderr,
    )
    # urllib3 logs every connection at debug level
    logging.getLogger('urllib3').setLevel(logging.INFO if verbose else logging.WARNING)


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        seed_url = normalize_url(args.url)
    except MalformedURL as e:
        parser.error(f"invalid URL: {e}")

    configure_logging(args.verbose)

    # Update config with command line arguments
    config = Config()
    config.MAX_DEPTH = args.depth
    config.MAX_THREADS = args.threads
    config.RUN_TIMEOUT = args.timeout
    config.MAX_PAGES = args.max_pages
    config.CRAWL_DELAY = args.delay
    config.SAME_DOMAIN = args.same_domain
    if args.request_timeout is not None:
        config.REQUEST_TIMEOUT = args.request_timeout
    if args.proxy:
        config.HTTP_PROXY = args.proxy
    if args.insecure:
        config.VERIFY_TLS = False
    if args.no_color:
        config.USE_COLOR = False
    ColorOutput.use_color = config.USE_COLOR

    run_config = RunConfig(
        seed_url=seed_url,
        max_depth=config.MAX_DEPTH,
        worker_count=config.MAX_THREADS,
        timeout=config.RUN_TIMEOUT,
        strict=args.strict,
        request_timeout=config.REQUEST_TIMEOUT,
        grace_period=config.GRACE_PERIOD,
        max_pages=config.MAX_PAGES,
        delay=config.CRAWL_DELAY,
        same_domain=config.SAME_DOMAIN,
    )

    ColorOutput.info(f"Starting email scraping on: {seed_url}")

    fetcher = RequestsFetcher(config, http_fallback=not has_scheme(args.url))
    extractor = HTMLExtractor(seed_url, same_domain=run_config.same_domain)
    with fetcher:
        controller = CrawlController(run_config, fetcher, extractor,
                                     on_email=EmailPrinter(strict=run_config.strict))
        result = controller.run()

    print_summary(result)

    if args.output:
        try:
            json_file, txt_file = write_report(result, args.output)
        except OSError as e:
            ColorOutput.error(f"Failed to save report: {e}")
        else:
            ColorOutput.success(f"Full report saved to: {json_file}")
            ColorOutput.success(f"Email list saved to: {txt_file}")

    if result.state is RunState.CANCELLED:
        return EXIT_INTERRUPTED
    return 0
