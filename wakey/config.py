"""Central configuration for the wakey tracker."""

import os
from pathlib import Path

# ── Paths ──────────────────────────────────────────────────────────────
_PROJECT_ROOT = Path(__file__).resolve().parent.parent

# Load .env from project root
_env_path = _PROJECT_ROOT / ".env"
if _env_path.exists():
    for _line in _env_path.read_text().splitlines():
        _line = _line.strip()
        if _line and not _line.startswith("#") and "=" in _line:
            _k, _, _v = _line.partition("=")
            os.environ.setdefault(_k.strip(), _v.strip())


def _default_data_dir() -> Path:
    env = os.environ.get("WAKEY_DATA_DIR")
    if env:
        return Path(env)
    if (_PROJECT_ROOT / "pyproject.toml").exists():
        return _PROJECT_ROOT / "data"
    return Path.home() / ".wakey"


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


DATA_DIR = _default_data_dir()
DB_PATH = DATA_DIR / "wakey.db"
LOG_PATH = DATA_DIR / "wakey.log"
PID_PATH = DATA_DIR / "wakey.pid"

# ── Sampling ───────────────────────────────────────────────────────────
SAMPLE_INTERVAL = _env_float("WAKEY_SAMPLE_INTERVAL", 5.0)
PROBE_TIMEOUT = 2.0          # a hung window probe is abandoned after this
IDLE_THRESHOLD = _env_float("WAKEY_IDLE_THRESHOLD", 300.0)  # 5 minutes

# ── Write queue ────────────────────────────────────────────────────────
WRITE_FLUSH_INTERVAL = 1.0   # worker wake-up when nothing is queued
WRITE_QUEUE_MAX = 1000       # oldest ops dropped beyond this
STORE_RETRY_ATTEMPTS = 4
STORE_RETRY_BASE_DELAY = 0.05  # doubled after every failed attempt

# ── Daemon health ──────────────────────────────────────────────────────
HEALTH_HEARTBEAT_INTERVAL = 60

# ── Quality scoring ────────────────────────────────────────────────────
SCORE_BASE = 100
SCORE_DISTRACTION_PENALTY = 5
SCORE_SWITCHES_PER_HOUR_ALLOWED = 3
SCORE_SWITCH_PENALTY = 3
SCORE_BREAK_COMPLIANCE_GOOD = 0.8
SCORE_BREAK_COMPLIANCE_POOR = 0.5
SCORE_BREAK_BONUS = 5
SCORE_BREAK_PENALTY = 10
SCORE_LONG_FOCUS_MINUTES = 45
SCORE_LONG_FOCUS_BONUS = 5
NEUTRAL_QUALITY_SCORE = 50   # break and meeting sessions

# ── Categorisation ─────────────────────────────────────────────────────
# Ordered (keyword, category) pairs, matched as lowercase substrings of the
# app name. First match wins, so a pair can be shadowed by an earlier one.
CATEGORY_RULES = (
    ("code", "Development"),
    ("visual studio", "Development"),
    ("pycharm", "Development"),
    ("webstorm", "Development"),
    ("terminal", "Development"),
    ("powershell", "Development"),
    ("cmd", "Development"),
    ("git", "Development"),
    ("postman", "Development"),
    ("slack", "Communication"),
    ("discord", "Communication"),
    ("teams", "Communication"),
    ("zoom", "Communication"),
    ("outlook", "Communication"),
    ("gmail", "Communication"),
    ("notion", "Productivity"),
    ("obsidian", "Productivity"),
    ("word", "Productivity"),
    ("excel", "Productivity"),
    ("docs", "Productivity"),
    ("figma", "Design"),
    ("photoshop", "Design"),
    ("illustrator", "Design"),
    ("canva", "Design"),
    ("youtube", "Entertainment"),
    ("netflix", "Entertainment"),
    ("spotify", "Entertainment"),
    ("steam", "Entertainment"),
    ("twitter", "Social Media"),
    ("facebook", "Social Media"),
    ("instagram", "Social Media"),
    ("linkedin", "Social Media"),
    ("reddit", "Social Media"),
    ("tiktok", "Social Media"),
    ("chrome", "Browser"),
    ("edge", "Browser"),
    ("firefox", "Browser"),
    ("safari", "Browser"),
)

# Browser URL host → category. Subdomains match their parent entry.
DOMAIN_RULES = {
    "github.com": "Development",
    "gitlab.com": "Development",
    "stackoverflow.com": "Development",
    "docs.google.com": "Productivity",
    "notion.so": "Productivity",
    "figma.com": "Design",
    "linear.app": "Productivity",
    "trello.com": "Productivity",
    "asana.com": "Productivity",
    "youtube.com": "Entertainment",
    "netflix.com": "Entertainment",
    "twitch.tv": "Entertainment",
    "twitter.com": "Social Media",
    "x.com": "Social Media",
    "reddit.com": "Social Media",
    "facebook.com": "Social Media",
    "instagram.com": "Social Media",
    "tiktok.com": "Social Media",
    "slack.com": "Communication",
    "discord.com": "Communication",
    "teams.microsoft.com": "Communication",
    "mail.google.com": "Communication",
    "outlook.live.com": "Communication",
}

DEFAULT_CATEGORY = "Other"

DISTRACTION_CATEGORIES = frozenset({"Entertainment", "Social Media"})
DISTRACTION_KEYWORDS = tuple(
    k.strip().lower()
    for k in os.environ.get(
        "WAKEY_DISTRACTIONS",
        "youtube,netflix,tiktok,instagram,twitter,reddit,facebook,"
        "steam,twitch,discord,telegram,whatsapp",
    ).split(",")
    if k.strip()
)

# ── AI categorisation fallback ─────────────────────────────────────────
AI_API_URL = os.environ.get(
    "WAKEY_AI_API_URL", "https://api.groq.com/openai/v1/chat/completions"
)
AI_API_KEY = os.environ.get("GROQ_API_KEY", "")
AI_MODEL = os.environ.get("WAKEY_AI_MODEL", "llama3-8b-8192")
AI_TIMEOUT = 5
AI_CATEGORIES = (
    "Development", "Communication", "Productivity", "Design", "Entertainment",
    "Social Media", "News", "Shopping", "Finance", "Education", "Other",
)
