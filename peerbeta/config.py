from dataclasses import dataclass
from pathlib import Path
import os
from dotenv import load_dotenv
import logging
import sys
import structlog

# Load environment variables early
load_dotenv()

# Step 1: Configure stdlib logging to use stderr
logging.basicConfig(
    format='%(asctime)s [%(levelname)-8s] %(message)s',
    stream=sys.stderr,
    level=logging.INFO,
    force=True
)

# Step 2: Configure structlog
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.KeyValueRenderer(key_order=['timestamp', 'level', 'event']),
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)

logger = logging.getLogger(__name__)

VALID_PERIODS = ("1Y", "3Y", "5Y")


@dataclass
class Config:
    """Configuration for the beta calculation service."""

    history_db_path: Path = Path(os.environ.get("HISTORY_DB_PATH", "./data/beta_history.db"))
    industry_table_path: Path = Path(
        os.environ.get("INDUSTRY_TABLE_PATH", "./attached_assets/industry_list.xlsx")
    )

    max_peers: int = int(os.environ.get("MAX_PEERS", "10"))
    # Keyword search only runs when fewer candidates than this were found
    peer_search_threshold: int = int(os.environ.get("PEER_SEARCH_THRESHOLD", "10"))
    search_result_limit: int = int(os.environ.get("SEARCH_RESULT_LIMIT", "20"))
    peer_max_concurrency: int = int(os.environ.get("PEER_MAX_CONCURRENCY", "8"))
    provider_timeout: int = int(os.environ.get("PROVIDER_TIMEOUT", "15"))

    default_period: str = os.environ.get("DEFAULT_PERIOD", "5Y")
    log_level: str = os.environ.get("LOG_LEVEL", "INFO")

    def __post_init__(self):
        if self.default_period not in VALID_PERIODS:
            logger.warning(
                f"Unsupported DEFAULT_PERIOD {self.default_period!r}, falling back to 5Y"
            )
            self.default_period = "5Y"

        if str(self.history_db_path) != ":memory:":
            self.history_db_path.parent.mkdir(parents=True, exist_ok=True)

        # Set logging level
        log_level = getattr(logging, self.log_level.upper(), logging.INFO)
        logging.getLogger().setLevel(log_level)
        for name in logging.root.manager.loggerDict:
            logging.getLogger(name).setLevel(log_level)


config = Config()
