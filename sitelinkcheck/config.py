"""Configuration dataclass for SiteLinkCheck."""

from dataclasses import dataclass


@dataclass
class CrawlConfig:
    """Configuration for a crawl session."""

    start_url: str
    page_limit: int = 10000
    concurrency: int = 10
    timeout: float = 30
    poll_interval: float = 0.1  # Bounded wait when the frontier is momentarily empty
    output_file: str = "error_details.csv"
    verbose: bool = False
    user_agent: str = (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
        "AppleWebKit/537.36 (KHTML, like Gecko) "
        "Chrome/131.0.0.0 Safari/537.36 SiteLinkCheck/1.0"
    )

    def __post_init__(self) -> None:
        if self.page_limit < 1:
            raise ValueError(f"page_limit must be at least 1, got {self.page_limit}")
        if self.concurrency < 1:
            raise ValueError(f"concurrency must be at least 1, got {self.concurrency}")
        if self.timeout <= 0:
            raise ValueError(f"timeout must be positive, got {self.timeout}")
        if self.poll_interval <= 0:
            raise ValueError(f"poll_interval must be positive, got {self.poll_interval}")
