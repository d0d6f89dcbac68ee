"""Entry point for the Drive Decision fare analysis server."""
import logging
import signal
import sys

from drive_decision.api.server import APIServer
from drive_decision.core.config import AppConfig
from drive_decision.core.settings_store import SettingsStore
from drive_decision.services.analyzer import FareAnalyzer
from drive_decision.services.recognizer import TesseractRecognizer

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

# Global reference for shutdown
api_server = None


def signal_handler(sig, frame):
    """Handle Ctrl+C gracefully."""
    logger.info("Shutdown signal received")
    if api_server:
        api_server.stop()
    sys.exit(0)


def main():
    global api_server

    # 1. Load configuration
    try:
        config = AppConfig.from_environment()
        store = SettingsStore(config.settings_path)
        settings = store.load()
        logger.info(f"Configuration loaded. Settings: {settings.to_dict()}")
    except Exception as e:
        logger.error(f"Failed to load configuration: {e}")
        sys.exit(1)

    # 2. Build the pipeline
    recognizer = TesseractRecognizer(timeout_s=config.ocr_timeout_s, lang=config.tesseract_lang)
    analyzer = FareAnalyzer(recognizer=recognizer, target_package=config.target_package)

    # 3. Start API server
    try:
        api_server = APIServer(analyzer, store, config)
        signal.signal(signal.SIGINT, signal_handler)
        api_server.run()
    except KeyboardInterrupt:
        logger.info("Server stopped by user")
    except Exception as e:
        logger.error(f"Server error: {e}")
    finally:
        if api_server:
            api_server.stop()
        logger.info("Shutdown complete")


if __name__ == "__main__":
    main()
