import os


class Config:
    def __init__(self):
        # Request Configuration
        self.USER_AGENT = "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
        self.REQUEST_TIMEOUT = 10
        self.MAX_PAGE_BYTES = 5 * 1024 * 1024
        self.VERIFY_TLS = True

        # Crawler Configuration
        self.MAX_DEPTH = 2
        self.MAX_THREADS = 4
        self.RUN_TIMEOUT = 60
        self.GRACE_PERIOD = 2.0
        self.MAX_PAGES = 0  # 0 = unlimited
        self.CRAWL_DELAY = 0
        self.SAME_DOMAIN = False

        # Output Configuration
        self.USE_COLOR = True

        # Proxy Configuration
        self.HTTP_PROXY = os.getenv('HTTP_PROXY')
        self.SOCKS_PROXY = os.getenv('SOCKS_PROXY')

    @property
    def proxy(self):
        return self.HTTP_PROXY or self.SOCKS_PROXY
