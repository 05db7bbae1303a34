# src/kubefeed/core/config.py

import logging
import os
import re

from dotenv import load_dotenv

# Load environment variables from a .env file located in the project root
dotenv_path = os.path.join(os.path.dirname(__file__), "..", "..", "..", ".env")
load_dotenv(dotenv_path=dotenv_path)

_DURATION_RE = re.compile(r"^(\d+)([smhd])$")
_TRUE_VALUES = ("true", "1", "t", "y", "yes")


def parse_duration_seconds(value: str) -> int:
    """
    Converts a Prometheus-style duration ('30s', '5m', '1h', '8d') to seconds.

    Raises:
        ValueError: If the string does not match the expected format.
    """
    match = _DURATION_RE.match((value or "").lower())
    if not match:
        raise ValueError(f"Invalid duration format: '{value}'. Use 's', 'm', 'h' or 'd'.")
    amount, unit = int(match.group(1)), match.group(2)
    multipliers = {"s": 1, "m": 60, "h": 3600, "d": 86400}
    return amount * multipliers[unit]


class Config:
    """
    Handles the application's configuration by loading values from environment variables.
    """

    def __init__(self):
        # -- Prometheus variables ---
        self.PROMETHEUS_BEARER_TOKEN = self._get_secret("PROMETHEUS_BEARER_TOKEN")

    @staticmethod
    def _get_secret(key: str, default: str = None) -> str:
        """
        Retrieves a secret from a file (mounted secret volume) or falls back to environment variable.

        Raises:
            PermissionError: If the secret file exists but cannot be read due to permissions.
            IOError: If the secret file exists but cannot be read due to I/O errors.
        """
        secret_file = f"/etc/kubefeed/secrets/{key}"
        if os.path.exists(secret_file):
            try:
                with open(secret_file, "r") as f:
                    value = f.read().strip()
                    logging.getLogger(__name__).debug(f"Loaded secret '{key}' from {secret_file}")
                    return value
            except PermissionError as e:
                raise PermissionError(
                    f"Secret file '{secret_file}' exists but cannot be read due to permission denied. "
                    f"Please check file permissions or run with appropriate privileges."
                ) from e
            except (IOError, OSError) as e:
                raise IOError(
                    f"Secret file '{secret_file}' exists but cannot be read: {e}. "
                    f"Please check the file integrity and system resources."
                ) from e
        return os.getenv(key, default)

    # --- Logging variables ---
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

    # --- Scheduling variables ---
    UPDATE_INTERVAL = os.getenv("UPDATE_INTERVAL", "1m")
    CHECKPOINT_GC_INTERVAL = os.getenv("CHECKPOINT_GC_INTERVAL", "10m")

    # --- Eviction watch variables ---
    OOM_QUEUE_MAXSIZE = int(os.getenv("OOM_QUEUE_MAXSIZE", "10000"))
    EVICTION_FIELD_SELECTOR = os.getenv("EVICTION_FIELD_SELECTOR", "reason=Evicted")
    WATCH_TIMEOUT_SECONDS = int(os.getenv("WATCH_TIMEOUT_SECONDS", "300"))
    WATCH_BACKOFF_BASE_SECONDS = float(os.getenv("WATCH_BACKOFF_BASE_SECONDS", "1.0"))
    WATCH_BACKOFF_MAX_SECONDS = float(os.getenv("WATCH_BACKOFF_MAX_SECONDS", "60.0"))
    WATCH_BACKOFF_JITTER = float(os.getenv("WATCH_BACKOFF_JITTER", "0.2"))

    # --- Custom resource coordinates ---
    VPA_GROUP = os.getenv("VPA_GROUP", "autoscaling.k8s.io")
    VPA_VERSION = os.getenv("VPA_VERSION", "v1")
    METRICS_GROUP = os.getenv("METRICS_GROUP", "metrics.k8s.io")
    METRICS_VERSION = os.getenv("METRICS_VERSION", "v1beta1")

    # -- Prometheus history variables ---
    # Empty means no history provider is wired at startup.
    PROMETHEUS_URL = os.getenv("PROMETHEUS_URL", "")
    PROMETHEUS_VERIFY_CERTS = os.getenv("PROMETHEUS_VERIFY_CERTS", "True").lower() in _TRUE_VALUES
    HISTORY_LENGTH = os.getenv("HISTORY_LENGTH", "8d")
    HISTORY_RESOLUTION = os.getenv("HISTORY_RESOLUTION", "1h")
    POD_LABEL_PREFIX = os.getenv("POD_LABEL_PREFIX", "pod_label_")

    # --- HTTP client variables ---
    DEFAULT_TIMEOUT_CONNECT = float(os.getenv("DEFAULT_TIMEOUT_CONNECT", "5"))
    DEFAULT_TIMEOUT_READ = float(os.getenv("DEFAULT_TIMEOUT_READ", "30"))
    USER_AGENT = os.getenv("USER_AGENT", "kubefeed")

    def validate_instance(self):
        for name in ("UPDATE_INTERVAL", "CHECKPOINT_GC_INTERVAL", "HISTORY_LENGTH", "HISTORY_RESOLUTION"):
            value = getattr(self, name)
            try:
                parse_duration_seconds(value)
            except ValueError:
                raise ValueError(f"{name} format is invalid: '{value}'. Use 's', 'm', 'h' or 'd'.")
        if self.OOM_QUEUE_MAXSIZE <= 0:
            raise ValueError("OOM_QUEUE_MAXSIZE must be a positive integer.")
        if self.WATCH_BACKOFF_BASE_SECONDS <= 0 or self.WATCH_BACKOFF_MAX_SECONDS < self.WATCH_BACKOFF_BASE_SECONDS:
            raise ValueError("WATCH_BACKOFF_MAX_SECONDS must be >= WATCH_BACKOFF_BASE_SECONDS > 0.")
        if not self.PROMETHEUS_URL:
            logging.getLogger(__name__).info("PROMETHEUS_URL is not set; history initialization is disabled.")


# Instantiate the config to be imported by other modules
config = Config()
config.validate_instance()
