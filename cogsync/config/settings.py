"""Application-wide configuration loaded from environment variables."""

import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

_CONFIG_DIR = Path(__file__).resolve().parent

# Redis
REDIS_URL: str = os.getenv("REDIS_URL", "redis://localhost:6379")

# Hour-of-day and day-of-week bucketing happen in this zone
COGSYNC_TIMEZONE: str = os.getenv("COGSYNC_TIMEZONE", "UTC")

# ── Record Fetching ──────────────────────────────────────────────────────

PROFILE_LOOKBACK_DAYS: int = int(os.getenv("PROFILE_LOOKBACK_DAYS", "30"))
RECORD_FETCH_LIMIT: int = int(os.getenv("RECORD_FETCH_LIMIT", "100"))  # per collection
SYNC_HISTORY_LENGTH: int = int(os.getenv("SYNC_HISTORY_LENGTH", "30"))

# ── Static Tables ────────────────────────────────────────────────────────

DOMAIN_MAPPING_PATH: Path = Path(
    os.getenv("DOMAIN_MAPPING_PATH", str(_CONFIG_DIR / "domain_mappings.yaml"))
)
SURVEY_TABLES_PATH: Path = Path(
    os.getenv("SURVEY_TABLES_PATH", str(_CONFIG_DIR / "survey_tables.yaml"))
)

# ── Aggregator Agent ─────────────────────────────────────────────────────

AGGREGATOR_SEED: str = os.getenv("AGGREGATOR_SEED", "cogsync-profile-aggregator-seed-v1")
AGGREGATOR_PORT: int = int(os.getenv("AGGREGATOR_PORT", "8010"))
AGGREGATION_INTERVAL: float = float(os.getenv("AGGREGATION_INTERVAL", "21600"))  # 6 h

# Set to "agentverse" to deploy on Agentverse (uses mailbox, no local endpoint).
# Set to "local" (default) for local dev with localhost endpoints.
AGENT_DEPLOY_MODE: str = os.getenv("AGENT_DEPLOY_MODE", "local")
AGENT_ENDPOINT_BASE: str = os.getenv("AGENT_ENDPOINT_BASE", "http://localhost")

# ── Server Configuration ─────────────────────────────────────────────────

SERVER_HOST: str = os.getenv("SERVER_HOST", "0.0.0.0")
SERVER_PORT: int = int(os.getenv("SERVER_PORT", "8000"))
