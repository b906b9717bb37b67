from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from google.cloud import vision
from openai import OpenAI

from studybuddy.errors import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "gpt-4-0613"
DEFAULT_CACHE_FILE = "responseCache.json"


@dataclass
class GatewaySettings:
    """Settings for chat-completion calls made by the LLM gateway."""

    api_key: Optional[str] = None
    model_name: str = DEFAULT_MODEL
    base_url: Optional[str] = None
    request_timeout: float = 60.0
    max_retries: int = 3

    @classmethod
    def from_env(cls, environ: Optional[Dict[str, str]] = None) -> "GatewaySettings":
        env = os.environ if environ is None else environ
        return cls(
            api_key=env.get("OPENAI_API_KEY") or None,
            model_name=env.get("GPT_MODEL") or DEFAULT_MODEL,
            base_url=env.get("OPENAI_BASE_URL") or None,
            request_timeout=float(env.get("LLM_REQUEST_TIMEOUT", "60")),
            max_retries=int(env.get("LLM_MAX_RETRIES", "3")),
        )


@dataclass
class VisionSettings:
    """Service-account credentials for the Google Cloud Vision client."""

    credentials_json: Optional[str] = None

    @classmethod
    def from_env(cls, environ: Optional[Dict[str, str]] = None) -> "VisionSettings":
        env = os.environ if environ is None else environ
        return cls(credentials_json=env.get("GOOGLE_CREDENTIALS") or None)

    def credentials_info(self) -> Dict[str, Any]:
        if not self.credentials_json:
            raise ConfigurationError("'GOOGLE_CREDENTIALS' not found within the environment.")
        try:
            return json.loads(self.credentials_json)
        except json.JSONDecodeError as exc:
            raise ConfigurationError(f"'GOOGLE_CREDENTIALS' is not valid JSON: {exc}") from exc


def build_openai_client(settings: GatewaySettings) -> OpenAI:
    """Create an OpenAI client; retries are handled by the gateway itself."""
    if not settings.api_key:
        raise ConfigurationError("'OPENAI_API_KEY' not found within the environment.")
    kwargs: Dict[str, Any] = {
        "api_key": settings.api_key,
        "timeout": settings.request_timeout,
        "max_retries": 0,
    }
    if settings.base_url:
        kwargs["base_url"] = settings.base_url
    return OpenAI(**kwargs)


def build_vision_client(settings: VisionSettings) -> vision.ImageAnnotatorClient:
    return vision.ImageAnnotatorClient.from_service_account_info(settings.credentials_info())


@dataclass
class AppConfig:
    """Process-wide settings plus lazily constructed provider clients.

    Settings are read from the environment once, at construction, and may be
    overridden from the Hydra configuration through :meth:`configure`.
    """

    gateway: GatewaySettings = field(default_factory=GatewaySettings.from_env)
    vision_settings: VisionSettings = field(default_factory=VisionSettings.from_env)
    cache_file: str = field(
        default_factory=lambda: os.getenv("STUDYBUDDY_CACHE_FILE", DEFAULT_CACHE_FILE)
    )
    _openai_client: Optional[OpenAI] = field(default=None, init=False, repr=False)
    _vision_client: Optional[vision.ImageAnnotatorClient] = field(
        default=None, init=False, repr=False
    )

    def _get_attr(self, cfg: Any, key: str, default: Any = None) -> Any:
        if cfg is None:
            return default
        if isinstance(cfg, dict):
            return cfg.get(key, default)
        return getattr(cfg, key, default)

    def configure(self, cfg: Any) -> None:
        """Apply ``model`` and ``cache`` sections of a Hydra/OmegaConf config."""
        if cfg is None:
            return

        model_cfg = self._get_attr(cfg, "model")
        name = self._get_attr(model_cfg, "name")
        if name:
            self.gateway.model_name = str(name)
        base_url = self._get_attr(model_cfg, "base_url")
        if base_url:
            self.gateway.base_url = str(base_url)
        timeout = self._get_attr(model_cfg, "request_timeout")
        if timeout is not None:
            self.gateway.request_timeout = float(timeout)
        retries = self._get_attr(model_cfg, "max_retries")
        if retries is not None:
            self.gateway.max_retries = int(retries)

        cache_path = self._get_attr(self._get_attr(cfg, "cache"), "path")
        if cache_path:
            self.cache_file = str(cache_path)

        # Settings changed, so any client built from the old ones is stale.
        self._openai_client = None

    def get_openai_client(self) -> OpenAI:
        if self._openai_client is None:
            self._openai_client = build_openai_client(self.gateway)
            logger.info("OpenAI client configured for model %s", self.gateway.model_name)
        return self._openai_client

    def get_vision_client(self) -> vision.ImageAnnotatorClient:
        if self._vision_client is None:
            self._vision_client = build_vision_client(self.vision_settings)
            logger.info("Google Cloud Vision client configured")
        return self._vision_client


app_config = AppConfig()
