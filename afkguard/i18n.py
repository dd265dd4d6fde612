"""Localized message bundles.

Bundles are flat JSON objects stored one per language code
(``translations/en_us.json``, ``translations/pt_br.json``, ...). They are
loaded once at startup and never reloaded.
"""

from __future__ import annotations

import json
import logging
import re
from pathlib import Path
from types import MappingProxyType
from typing import Any, Mapping, Optional

logger = logging.getLogger(__name__)

DEFAULT_LANGUAGE = "en_us"
PLACEHOLDER_RE = re.compile(r"\{(\w+)\}")


class LocalizationError(Exception):
    """A translation bundle could not be loaded."""


def _load_bundle(path: Path) -> dict[str, str]:
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
        raise LocalizationError(f"Cannot read translation bundle {path}: {e}") from e

    if not isinstance(payload, dict):
        raise LocalizationError(f"Translation bundle {path} must be a JSON object")
    for key, value in payload.items():
        if not isinstance(value, str):
            raise LocalizationError(f"Translation bundle {path}: value for {key!r} is not a string")
    return payload


class Localizer:
    def __init__(self, bundles: Mapping[str, Mapping[str, str]], default_language: str = DEFAULT_LANGUAGE):
        self._bundles = {
            code.lower(): MappingProxyType(dict(bundle)) for code, bundle in bundles.items()
        }
        self.default_language = default_language.lower()

    @classmethod
    def load(cls, directory: Path | str, default_language: str = DEFAULT_LANGUAGE) -> "Localizer":
        """Load every ``*.json`` bundle in ``directory``. Any malformed file is fatal."""
        directory = Path(directory)
        if not directory.is_dir():
            raise LocalizationError(f"Translation directory not found: {directory}")

        bundles = {path.stem.lower(): _load_bundle(path) for path in sorted(directory.glob("*.json"))}
        if default_language.lower() not in bundles:
            raise LocalizationError(
                f"Default language bundle {default_language!r} missing from {directory}"
            )
        logger.info("Loaded %d translation bundles: %s", len(bundles), ", ".join(sorted(bundles)))
        return cls(bundles, default_language=default_language)

    @property
    def languages(self) -> list[str]:
        return sorted(self._bundles)

    def has_language(self, language: Optional[str]) -> bool:
        return bool(language) and language.lower() in self._bundles

    def normalize(self, code: Optional[str]) -> Optional[str]:
        """Map a platform locale such as ``pt-BR`` or ``en-US`` to a loaded bundle code."""
        if not code:
            return None
        candidate = str(code).strip().lower().replace("-", "_")
        if candidate in self._bundles:
            return candidate
        # Bare locales ("fr", "de") pick the first bundle for that language.
        prefix = candidate.split("_", 1)[0] + "_"
        for language in self.languages:
            if language.startswith(prefix):
                return language
        return None

    def resolve(self, language: Optional[str], key: str, placeholders: Optional[Mapping[str, Any]] = None) -> str:
        """Render ``key`` in ``language``, falling back to the default bundle and then the key itself."""
        text = None
        if language:
            text = self._bundles.get(language.lower(), {}).get(key)
        if text is None:
            text = self._bundles.get(self.default_language, {}).get(key, key)

        if not placeholders:
            return text
        # Single pass, so substituted values are never scanned for tokens again.
        return PLACEHOLDER_RE.sub(
            lambda match: str(placeholders[match[1]]) if match[1] in placeholders else match[0],
            text,
        )
