import json
import os
from typing import Any, Dict, List, Optional

from dotenv import load_dotenv

from .errors import ConfigError

load_dotenv()


def _env_bool(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


class Config:
    def __init__(self) -> None:
        # Secret key
        self.SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key")

        # Firestore: either the raw service account JSON or a path to it
        self.FIREBASE_SERVICE_ACCOUNT = os.environ.get("FIREBASE_SERVICE_ACCOUNT", "")
        self.FIREBASE_CREDENTIALS_FILE = os.environ.get("FIREBASE_CREDENTIALS_FILE", "")
        self.GROUP_NAME = os.environ.get("GROUP_NAME", "no groupcest")

        # Shared secret for the report trigger
        self.REPORT_TOKEN = os.environ.get("REPORT_TOKEN", "")

        # Mail (Postmark speaks SMTP with the server token as user and password)
        self.MAIL_SERVER = os.environ.get("MAIL_SERVER", "smtp.postmarkapp.com")
        self.MAIL_PORT = int(os.environ.get("MAIL_PORT", 587))
        self.MAIL_USE_TLS = _env_bool("MAIL_USE_TLS", True)
        self.MAIL_USERNAME = os.environ.get("MAIL_USERNAME")
        self.MAIL_PASSWORD = os.environ.get("MAIL_PASSWORD")
        self.MAIL_DEFAULT_SENDER = os.environ.get("MAIL_DEFAULT_SENDER", "")
        self.TEST_EMAIL_RECIPIENT = os.environ.get("TEST_EMAIL_RECIPIENT", self.MAIL_DEFAULT_SENDER)

        # Report batch limits, in seconds
        self.MAIL_SEND_TIMEOUT = float(os.environ.get("MAIL_SEND_TIMEOUT", 10))
        self.REPORT_BATCH_TIMEOUT = float(os.environ.get("REPORT_BATCH_TIMEOUT", 60))
        self.REPORT_MAX_WORKERS = int(os.environ.get("REPORT_MAX_WORKERS", 8))

        # Daily trigger
        self.SCHEDULER_ENABLED = _env_bool("SCHEDULER_ENABLED", False)
        self.REPORT_CRON_HOUR = int(os.environ.get("REPORT_CRON_HOUR", 9))
        self.REPORT_CRON_MINUTE = int(os.environ.get("REPORT_CRON_MINUTE", 0))
        self.REPORT_TIMEZONE = os.environ.get("REPORT_TIMEZONE", "America/New_York")

        self.CORS_ORIGINS: List[str] = [
            origin.strip()
            for origin in os.environ.get("CORS_ORIGINS", "http://localhost:3000").split(",")
            if origin.strip()
        ]
        self.LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()

    def firebase_credentials(self) -> Any:
        """Return the service account as a dict, or the credentials file path."""
        if self.FIREBASE_SERVICE_ACCOUNT:
            try:
                account: Dict[str, Any] = json.loads(self.FIREBASE_SERVICE_ACCOUNT)
            except ValueError as exc:
                raise ConfigError(f"FIREBASE_SERVICE_ACCOUNT is not valid JSON: {exc}") from exc
            if not isinstance(account, dict) or "private_key" not in account:
                raise ConfigError("FIREBASE_SERVICE_ACCOUNT is missing a private_key")
            return account
        if self.FIREBASE_CREDENTIALS_FILE:
            if not os.path.isfile(self.FIREBASE_CREDENTIALS_FILE):
                raise ConfigError(f"Firebase credentials file not found: {self.FIREBASE_CREDENTIALS_FILE}")
            return self.FIREBASE_CREDENTIALS_FILE
        raise ConfigError("Set FIREBASE_SERVICE_ACCOUNT or FIREBASE_CREDENTIALS_FILE")

    def validate(self) -> None:
        missing: List[str] = []
        if not self.REPORT_TOKEN:
            missing.append("REPORT_TOKEN")
        if not self.MAIL_DEFAULT_SENDER:
            missing.append("MAIL_DEFAULT_SENDER")
        if missing:
            raise ConfigError(f"Missing required settings: {', '.join(missing)}")
        if self.REPORT_MAX_WORKERS < 1:
            raise ConfigError("REPORT_MAX_WORKERS must be at least 1")
        self.firebase_credentials()

    def mail_settings(self) -> Dict[str, Optional[Any]]:
        return {
            "MAIL_SERVER": self.MAIL_SERVER,
            "MAIL_PORT": self.MAIL_PORT,
            "MAIL_USE_TLS": self.MAIL_USE_TLS,
            "MAIL_USERNAME": self.MAIL_USERNAME,
            "MAIL_PASSWORD": self.MAIL_PASSWORD,
            "MAIL_DEFAULT_SENDER": self.MAIL_DEFAULT_SENDER,
        }


config = Config()
