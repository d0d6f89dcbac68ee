# drive_decision/api/server.py
"""
DRIVE_DECISION_PROJECT - API Server
Flask API exposing settings and on-demand fare analysis to the overlay client.
"""

import base64
import binascii
import logging
from typing import Any, List, Optional, Tuple

import cv2
import numpy as np
from flask import Flask, Response, jsonify, request

from drive_decision.core.config import AppConfig, SettingsSnapshot
from drive_decision.core.models import OcrLine, Rect
from drive_decision.core.settings_store import SettingsStore
from drive_decision.services.analyzer import FareAnalyzer

logger = logging.getLogger(__name__)

_RECT_KEYS = ('left', 'top', 'right', 'bottom')


class BadRequest(ValueError):
    """Malformed request payload; answered with 400."""
    pass


def _parse_rect(data: Any, what: str) -> Rect:
    if not isinstance(data, dict):
        raise BadRequest(f"'{what}' must be an object with {', '.join(_RECT_KEYS)}")
    try:
        return Rect(*(int(data[key]) for key in _RECT_KEYS))
    except KeyError as e:
        raise BadRequest(f"'{what}' is missing {e}")
    except (TypeError, ValueError):
        raise BadRequest(f"'{what}' coordinates must be integers")


def _parse_lines(data: Any) -> List[OcrLine]:
    if not isinstance(data, list):
        raise BadRequest("'ocr_lines' must be a list")
    lines = []
    for i, item in enumerate(data):
        if not isinstance(item, dict) or not isinstance(item.get('text'), str):
            raise BadRequest(f"ocr_lines[{i}] needs a 'text' string")
        lines.append(OcrLine(text=item['text'], rect=_parse_rect(item, f"ocr_lines[{i}]")))
    return lines


def _decode_image(data: Any) -> np.ndarray:
    """Decode a base64 PNG/JPEG (optionally a data: URL) into a BGR frame."""
    if not isinstance(data, str):
        raise BadRequest("'image_data' must be a base64 string")
    try:
        raw = base64.b64decode(data.split(',', 1)[-1], validate=True)
    except (binascii.Error, ValueError):
        raise BadRequest("'image_data' is not valid base64")
    frame = cv2.imdecode(np.frombuffer(raw, np.uint8), cv2.IMREAD_COLOR)
    if frame is None:
        raise BadRequest("'image_data' is not a decodable image")
    return frame


class APIServer:
    """HTTP front end for a FareAnalyzer and its SettingsStore."""

    def __init__(self, analyzer: FareAnalyzer, settings_store: SettingsStore, config: Optional[AppConfig] = None) -> None:
        self.analyzer = analyzer
        self.settings_store = settings_store
        self.config = config if config is not None else AppConfig()
        self.logger = logging.getLogger(__name__)

    def create_app(self) -> Flask:
        """Create and configure the Flask application."""
        app = Flask(__name__)
        self._register_routes(app)
        self._register_error_handlers(app)
        return app

    def _register_routes(self, app: Flask) -> None:
        """Register all API route handlers."""
        app.add_url_rule("/api/status", view_func=self._handle_status)
        app.add_url_rule("/api/settings", methods=['GET'], view_func=self._handle_get_settings)
        app.add_url_rule("/api/settings", endpoint="update_settings", methods=['PUT'],
                         view_func=self._handle_put_settings)
        app.add_url_rule("/api/analyze", methods=['POST'], view_func=self._handle_analyze)

    def _register_error_handlers(self, app: Flask) -> None:
        """Register HTTP error handlers."""
        @app.errorhandler(404)
        def not_found(error: Any) -> Tuple[Response, int]:
            return jsonify({"error": "Resource not found"}), 404

        @app.errorhandler(405)
        def method_not_allowed(error: Any) -> Tuple[Response, int]:
            return jsonify({"error": "Method not allowed"}), 405

        @app.errorhandler(500)
        def internal_error(error: Any) -> Tuple[Response, int]:
            return jsonify({"error": "Internal server error"}), 500

    # --- Route Handlers ---
    def _handle_status(self) -> Tuple[Response, int]:
        return jsonify({
            "busy": self.analyzer.busy,
            "ocr_timeout_s": self.config.ocr_timeout_s,
        }), 200

    def _handle_get_settings(self) -> Tuple[Response, int]:
        try:
            return jsonify(self.settings_store.load().to_dict()), 200
        except ValueError as e:
            self.logger.error(f"Stored settings are invalid: {e}")
            return jsonify({"error": f"Stored settings are invalid: {e}"}), 500

    def _handle_put_settings(self) -> Tuple[Response, int]:
        payload = request.get_json(silent=True)
        if not isinstance(payload, dict):
            return jsonify({"error": "JSON object required"}), 400
        try:
            updated = self.settings_store.update(payload)
        except ValueError as e:
            return jsonify({"error": str(e)}), 400
        except OSError as e:
            self.logger.error(f"Failed to persist settings: {e}")
            return jsonify({"error": "Failed to persist settings"}), 500
        self.logger.info(f"Settings updated: {updated.to_dict()}")
        return jsonify(updated.to_dict()), 200

    def _handle_analyze(self) -> Tuple[Response, int]:
        """Run one analysis synchronously; a concurrent request gets 409."""
        payload = request.get_json(silent=True)
        if not isinstance(payload, dict):
            return jsonify({"error": "JSON object required"}), 400

        try:
            settings = self._settings_for(payload.get('settings'))
            text = payload.get('accessibility_text')
            if text is not None and not isinstance(text, str):
                raise BadRequest("'accessibility_text' must be a string")
            lines = _parse_lines(payload['ocr_lines']) if payload.get('ocr_lines') is not None else None
            frame = _decode_image(payload['image_data']) if payload.get('image_data') else None
            crop = _parse_rect(payload['crop'], 'crop') if payload.get('crop') is not None else None
        except ValueError as e:
            return jsonify({"error": str(e)}), 400

        try:
            result = self.analyzer.analyze(
                settings,
                accessibility_text=text,
                ocr_lines=lines,
                frame=frame,
                crop=crop,
            )
        except (TypeError, ValueError) as e:
            return jsonify({"error": str(e)}), 400
        except Exception as e:
            self.logger.exception(f"/api/analyze error: {e}")
            return jsonify({"error": "Internal server error"}), 500

        status_code = 409 if result.status == 'busy' else 200
        return jsonify(result.to_dict()), status_code

    def _settings_for(self, override: Any) -> SettingsSnapshot:
        stored = self.settings_store.load()
        if override is None:
            return stored
        if not isinstance(override, dict):
            raise BadRequest("'settings' must be an object")
        return stored.merged(override)

    def run(self, host: Optional[str] = None, port: Optional[int] = None, debug: bool = False) -> None:
        """Start the server (blocking)."""
        app = self.create_app()
        host = host or self.config.api_host
        port = port or self.config.api_port
        self.logger.info(f"Serving fare analysis on {host}:{port}")
        app.run(host=host, port=port, debug=debug, threaded=True)

    def stop(self) -> None:
        """Release the analyzer's worker."""
        self.analyzer.shutdown(wait=False)
