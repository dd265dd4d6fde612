import base64
import logging
import os
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from cryptography.fernet import Fernet, InvalidToken
from dotenv import load_dotenv

logger = logging.getLogger(__name__)

PACKAGE_TRANSLATIONS_DIR = Path(__file__).parent / "translations"
PLACEHOLDER_TOKENS = {"", "replace-me", "your_bot_token_here"}


def _get_decryption_key() -> Optional[bytes]:
    """Return the Fernet key from ENCRYPTION_KEY or ENCRYPTION_KEY_FILE, if any."""
    key_str = os.getenv("ENCRYPTION_KEY")
    if key_str:
        return key_str.strip().encode()

    key_file = Path(os.getenv("ENCRYPTION_KEY_FILE", ".encryption_key"))
    if key_file.exists():
        try:
            return key_file.read_bytes().strip()
        except OSError as e:
            logger.warning("Failed to read encryption key file: %s", e)
    return None


def _load_decrypted(path: Path, key: bytes) -> bool:
    """Decrypt an env file into a temp file and load it. Returns False if it is not encrypted."""
    try:
        decrypted = Fernet(key).decrypt(path.read_bytes())
    except (InvalidToken, ValueError, OSError):
        return False

    with tempfile.NamedTemporaryFile(mode="w", delete=False, suffix=".env") as tmp:
        tmp.write(decrypted.decode())
        tmp_path = tmp.name
    try:
        load_dotenv(tmp_path, override=True)
    finally:
        try:
            os.unlink(tmp_path)
        except OSError:
            logger.debug("Could not remove decrypted env file %s", tmp_path)
    logger.info("Loaded encrypted environment from %s", path)
    return True


def load_environment() -> None:
    """Load .env into the process environment.

    Supports a Fernet-encrypted ENV_FILE (default ``.env``) and a
    ``.env.encrypted`` fallback when no plain ``.env`` exists.
    """
    env_path = Path(os.getenv("ENV_FILE", ".env"))
    key = _get_decryption_key()

    if key is not None:
        if env_path.exists() and _load_decrypted(env_path, key):
            return
        encrypted = Path(".env.encrypted")
        if not Path(".env").exists() and encrypted.exists():
            if _load_decrypted(encrypted, key):
                return
            logger.warning("Found .env.encrypted but failed to decrypt it, falling back to plain .env")

    load_dotenv(env_path if env_path.exists() else None)


def _decrypt_value(encrypted_value: str) -> Optional[str]:
    if not encrypted_value.startswith("encrypted:"):
        return encrypted_value

    key = _get_decryption_key()
    if key is None:
        logger.warning("Encrypted value detected but no decryption key available")
        return None

    try:
        payload = base64.urlsafe_b64decode(encrypted_value[len("encrypted:"):].encode())
        return Fernet(key).decrypt(payload).decode()
    except (InvalidToken, ValueError) as e:
        logger.error("Failed to decrypt value: %s", e)
        return None


def _get_env(name: str, *, required: bool = True, default: Optional[str] = None) -> Optional[str]:
    """Read an environment variable, decrypting ``encrypted:`` values."""
    value = os.getenv(name, default)
    if value is None and required:
        raise RuntimeError(f"Missing required environment variable: {name}")

    if value and value.startswith("encrypted:"):
        decrypted = _decrypt_value(value)
        if decrypted is None:
            raise RuntimeError(f"Failed to decrypt encrypted environment variable: {name}")
        return decrypted

    return value


def _parse_optional_int(raw: Optional[str]) -> Optional[int]:
    if raw is None or raw == "":
        return None
    try:
        return int(raw)
    except ValueError as exc:
        raise RuntimeError(f"Invalid integer value: {raw}") from exc


def _parse_int(name: str, default: int) -> int:
    value = _parse_optional_int(_get_env(name, required=False))
    return default if value is None else value


def _parse_bool(raw: Optional[str], default: bool) -> bool:
    if raw is None or raw == "":
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class Settings:
    discord_token: str
    client_id: int
    discord_guild_id: Optional[int]
    database_path: str
    translations_dir: Path
    default_language: str
    default_afk_timeout: int
    reconcile_interval_minutes: int
    api_enabled: bool
    api_host: str
    api_port: int
    dashboard_username: Optional[str]
    dashboard_password: Optional[str]
    dashboard_secret_key: str
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        token = _get_env("BOT_TOKEN", required=False) or _get_env("DISCORD_TOKEN", required=False)
        if token is None:
            raise RuntimeError("Missing required environment variable: BOT_TOKEN")

        client_id = _parse_optional_int(_get_env("CLIENT_ID"))
        translations_raw = _get_env("TRANSLATIONS_DIR", required=False)

        settings = cls(
            discord_token=token,
            client_id=client_id,
            discord_guild_id=_parse_optional_int(_get_env("DISCORD_GUILD_ID", required=False)),
            database_path=_get_env("DATABASE_PATH", required=False, default="data/afkguard.sqlite3"),
            translations_dir=Path(translations_raw) if translations_raw else PACKAGE_TRANSLATIONS_DIR,
            default_language=_get_env("DEFAULT_LANGUAGE", required=False, default="en_us").lower(),
            default_afk_timeout=_parse_int("DEFAULT_AFK_TIMEOUT_MINUTES", 5),
            reconcile_interval_minutes=_parse_int("RECONCILE_INTERVAL_MINUTES", 5),
            api_enabled=_parse_bool(_get_env("API_ENABLED", required=False), True),
            api_host=_get_env("API_HOST", required=False, default="0.0.0.0"),
            api_port=_parse_int("API_PORT", 8000),
            dashboard_username=_get_env("DASHBOARD_USERNAME", required=False),
            dashboard_password=_get_env("DASHBOARD_PASSWORD", required=False),
            dashboard_secret_key=_get_env("DASHBOARD_SECRET_KEY", required=False, default="change-me-in-production"),
            log_level=_get_env("LOG_LEVEL", required=False, default="INFO").upper(),
        )

        logger.debug("Loaded settings for application %s", settings.client_id)
        return settings

    def validate(self) -> list[str]:
        """Validate settings and return a list of errors (empty if valid)."""
        errors = []

        if not self.discord_token or self.discord_token in PLACEHOLDER_TOKENS:
            errors.append("BOT_TOKEN is required and must not be a placeholder")

        if not self.client_id:
            errors.append("CLIENT_ID is required")

        if self.default_afk_timeout < 1:
            errors.append(f"DEFAULT_AFK_TIMEOUT_MINUTES must be positive (got {self.default_afk_timeout})")

        if self.reconcile_interval_minutes < 1:
            errors.append(f"RECONCILE_INTERVAL_MINUTES must be positive (got {self.reconcile_interval_minutes})")

        if not self.translations_dir.is_dir():
            errors.append(f"TRANSLATIONS_DIR does not exist: {self.translations_dir}")

        if self.api_enabled:
            if not (1 <= self.api_port <= 65535):
                errors.append(f"API_PORT must be between 1 and 65535 (got {self.api_port})")
            if bool(self.dashboard_username) != bool(self.dashboard_password):
                errors.append("DASHBOARD_USERNAME and DASHBOARD_PASSWORD must be set together")
            if self.dashboard_username and self.dashboard_secret_key == "change-me-in-production":
                logger.warning("DASHBOARD_SECRET_KEY is using the default value; set a unique secret")

        return errors


def validate_settings(settings: Settings) -> None:
    """Raise RuntimeError listing every configuration problem."""
    errors = settings.validate()
    if errors:
        for error in errors:
            logger.error("Configuration error: %s", error)
        raise RuntimeError("Invalid configuration:\n  - " + "\n  - ".join(errors))
