"""Entry point that wires Hydra configuration and launches the quiz server."""

import logging
import os
import sys
import webbrowser
from pathlib import Path

# Ensure the project root is on the import path when executed as a script.
PROJECT_ROOT = Path(__file__).resolve().parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

import hydra
from omegaconf import DictConfig, OmegaConf

from studybuddy.actions import FormActions
from studybuddy.cache import ResponseCache
from studybuddy.config import app_config
from studybuddy.llm_utils import LLMGateway
from studybuddy.ocr import VisionOCR
from studybuddy.webui.server import start_server


def build_actions(cache: ResponseCache) -> FormActions:
    gateway = LLMGateway(
        cache,
        settings=app_config.gateway,
        client_factory=lambda _settings: app_config.get_openai_client(),
    )
    ocr = VisionOCR(
        settings=app_config.vision_settings,
        client_factory=lambda _settings: app_config.get_vision_client(),
    )
    return FormActions(gateway, ocr)


@hydra.main(config_path="configs", config_name="config", version_base=None)
def main(cfg: DictConfig) -> None:
    """Hydra-driven execution entry point for the quiz server."""
    logging.basicConfig(
        level=os.getenv("LOG_LEVEL", "INFO"),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    print("\n" + "=" * 70)
    print("📚 STUDYBUDDY – TEXTBOOK QUIZ HELPER")
    print("=" * 70)
    print("\n📊 Configuration:")
    print(OmegaConf.to_yaml(cfg))

    app_config.configure(cfg)
    if not app_config.gateway.api_key:
        print("⚠️ OPENAI_API_KEY is not set; only cached responses can be served.")
    if not app_config.vision_settings.credentials_json:
        print("⚠️ GOOGLE_CREDENTIALS is not set; image uploads will fail.")

    cache = ResponseCache(app_config.cache_file).init()
    print(f"💾 Response cache: {cache.path} ({len(cache)} entries)")

    port = int(cfg.server.port)
    url = f"http://localhost:{port}"
    print(f"🎨 Quiz page: {url}")
    if cfg.server.get("open_browser", False):
        try:
            webbrowser.open_new_tab(url)
        except Exception as exc:
            print(f"  (Unable to open the browser automatically: {exc})")

    try:
        start_server(port, build_actions(cache), host=str(cfg.server.get("host", "")))
    except KeyboardInterrupt:
        print("\n\n⚠️ Server stopped by user")
    finally:
        cache.close()


if __name__ == "__main__":
    main()
