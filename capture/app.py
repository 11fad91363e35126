"""
Flask HTTP surface for the capture service.
Dashboard-free JSON API: captures, capture history, profile and health.
"""

from datetime import datetime, timezone
from functools import wraps

from flask import Flask, Response, g, jsonify, request
from werkzeug.exceptions import HTTPException

from capture.config import CaptureConfig
from capture.errors import CapacityExceeded, CaptureError
from capture.governor import ConcurrencyGovernor
from capture.identity import IdentityVerifier, bearer_token
from capture.ledger.engine import CaptureLedger
from capture.logger import get_logger
from capture.pipeline import CapturePipeline
from capture.validation import parse_capture_request, parse_history_params

logger = get_logger("api")


def create_app(config: CaptureConfig, pipeline: CapturePipeline, ledger: CaptureLedger,
               governor: ConcurrencyGovernor, verifier: IdentityVerifier) -> Flask:
    app = Flask(__name__)

    def requires_identity(f):
        """Verifies the bearer token once per request and exposes it as g.identity."""
        @wraps(f)
        def decorated(*args, **kwargs):
            g.identity = verifier.verify_identity(bearer_token(request.headers))
            return f(*args, **kwargs)
        return decorated

    # ============================================================
    # CAPTURES
    # ============================================================

    @app.route('/captures', methods=['POST'])
    @requires_identity
    def create_capture():
        capture_request = parse_capture_request(request.get_json(silent=True), config)
        result = pipeline.capture(capture_request, g.identity)

        response = Response(result.image, status=201, mimetype=result.content_type)
        response.headers['X-Capture-Id'] = result.record.record_id
        response.headers['X-Capture-Size'] = str(result.record.size_bytes)
        return response

    @app.route('/captures', methods=['GET'])
    @requires_identity
    def list_captures():
        limit, offset = parse_history_params(request.args, config)
        page = ledger.query(g.identity.identity_id, limit, offset)
        return jsonify(page.to_dict())

    # ============================================================
    # PROFILE / HEALTH
    # ============================================================

    @app.route('/profile')
    @requires_identity
    def profile():
        identity = g.identity
        return jsonify({
            "id": identity.identity_id,
            "username": identity.username,
            "captureCount": ledger.count_for(identity.identity_id),
        })

    @app.route('/health')
    def health():
        return jsonify({
            "status": "OK",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "governor": {"active": governor.active, "queued": governor.queued},
        })

    # ============================================================
    # ERROR HANDLERS
    # ============================================================

    @app.errorhandler(CaptureError)
    def capture_error(error):
        response = jsonify(error.to_dict())
        response.status_code = error.status_code
        if isinstance(error, CapacityExceeded):
            response.headers['Retry-After'] = str(max(1, int(config.queue_timeout)))
        return response

    @app.errorhandler(HTTPException)
    def http_error(error):
        response = jsonify({"error": error.description, "kind": error.name.replace(" ", "")})
        response.status_code = error.code
        return response

    @app.errorhandler(Exception)
    def server_error(error):
        logger.exception(f"[API] Unhandled error on {request.method} {request.path}: {error}")
        return jsonify({"error": "Internal server error", "kind": "InternalError"}), 500

    return app
