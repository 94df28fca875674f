"""
config/settings.py
Central configuration: reads from environment variables and .env file.
"""
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent.parent


def _as_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


class Settings:

    def __init__(self):
        self._load()

    def _load(self):
        import os
        env_file = BASE_DIR / ".env"
        if env_file.exists():
            for line in env_file.read_text().splitlines():
                line = line.strip()
                if line and not line.startswith("#") and "=" in line:
                    key, _, val = line.partition("=")
                    os.environ.setdefault(key.strip(), val.strip())

        self.sqlite_db_path    = os.environ.get(
            "SQLITE_DB_PATH", str(BASE_DIR / "data" / "postal_pricing.db")
        )
        self.catalog_json_path = os.environ.get(
            "CATALOG_JSON_PATH", str(BASE_DIR / "data" / "catalog.json")
        )

        self.api_host    = os.environ.get("API_HOST", "0.0.0.0")
        self.api_port    = int(os.environ.get("API_PORT", "8000"))
        self.api_title   = "Postal Pricing API"
        self.api_version = "1.0.0"

        self.metrics_port = int(os.environ.get("METRICS_PORT", "9090"))
        self.log_level    = os.environ.get("LOG_LEVEL", "INFO")

        # Pricing
        self.tax_rate            = float(os.environ.get("TAX_RATE", "0.16"))
        self.strict_rule_loading = _as_bool(os.environ.get("STRICT_RULE_LOADING", "false"))

        # Billing
        self.invoice_due_days = int(os.environ.get("INVOICE_DUE_DAYS", "30"))


settings = Settings()
