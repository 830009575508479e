from pathlib import Path

# === Core Directories ===
PROCESSED_DIR = Path("data/processed")
REPORTS_OUTREACH_DIR = Path("reports/outreach")
STATE_PATH = Path(".leakstopper/state.json")

# === Default Filters ===
DEFAULT_THRESHOLD_DAYS = 90
DEFAULT_MIN_SPENDING = 0.0
DEFAULT_RISK_LEVEL = "all"
THRESHOLD_SLIDER_MIN = 7
THRESHOLD_SLIDER_MAX = 365

# === Leak Score Weights ===
WEIGHTS = {
    "recency": 0.3,
    "revenue": 0.5,
    "frequency": 0.2,
}
RECENCY_SATURATION_DAYS = 180  # urgency maxes out at ~6 months inactive
NEUTRAL_FREQUENCY_SCORE = 50.0  # unknown purchase count is treated as average

# === Risk Bands ===
CRITICAL_MIN = 70
HIGH_MIN = 50
MEDIUM_MIN = 30

# === Lost Revenue Estimate ===
DAYS_PER_MONTH = 30
PURCHASE_CADENCE_MONTHS = 2  # baseline: one purchase every two months

# === Aggregates ===
HEALTH_AMPLIFIER = 1.2
VELOCITY_AMPLIFIER = 20
MAX_LEAK_VELOCITY = 10.0
TOP_LEAKED_LIMIT = 50

# === Message Generation ===
GOOGLE_API_KEY_ENV = "GOOGLE_API_KEY"
OPENAI_API_KEY_ENV = "OPENAI_API_KEY"
DEFAULT_PROVIDER = "google"
DEFAULT_MODELS = {
    "google": "gemini-2.5-flash",
    "openai": "gpt-4o",
}
DEFAULT_COMPANY_NAME = "Our Company"
BULK_PREVIEW_LIMIT = 3
MAX_MESSAGE_CHARS = 400
MAX_SUBJECT_CHARS = 50

# === Ingestion ===
# dates outside this window are treated as typos and read as "unknown"
MIN_PURCHASE_YEAR = 1900
MAX_PURCHASE_YEAR = 2100
