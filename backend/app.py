"""Local development server exposing the same routes as the Lambda."""
import base64
import json
import logging
import os
import sys

import boto3
from flask import Flask, Response, jsonify, request
from flask_cors import CORS

from handlers import (
    create_download_handler,
    create_report_generate_handler,
    create_report_load_handler,
)
from logging_utils import configure_logging
from playwright_environment import ensure_chromium_installed
from report_service import create_report_service
from report_settings import resolve_report_settings
from report_storage import ReportStorage


configure_logging()
logger = logging.getLogger(__name__)


def _event_from_request(path_params=None):
    """Translate the current Flask request into an API Gateway style event."""
    body = request.get_data() or b""
    return {
        'path': request.path,
        'httpMethod': request.method,
        'headers': dict(request.headers),
        'queryStringParameters': request.args.to_dict(),
        'pathParameters': path_params or {},
        'body': base64.b64encode(body).decode('ascii'),
        'isBase64Encoded': True,
    }


def _to_flask_response(result):
    status = result.get('statusCode', 200)
    headers = dict(result.get('headers') or {})
    body = result.get('body') or ''
    if result.get('isBase64Encoded'):
        body = base64.b64decode(body)
    return Response(body, status=status, headers=headers)


def create_app(settings=None, service=None, storage=None):
    settings = settings or resolve_report_settings()
    if storage is None:
        s3_client = boto3.client('s3') if settings.s3_bucket else None
        storage = ReportStorage(logger, s3_client=s3_client, bucket=settings.s3_bucket, storage_dir=settings.storage_dir)
    service = service or create_report_service(logger, settings, storage)

    handle_load = create_report_load_handler(logger=logger, service=service)
    handle_generate = create_report_generate_handler(logger=logger, service=service)
    handle_download = create_download_handler(logger=logger, storage=storage)

    app = Flask(__name__)
    CORS(
        app,
        resources={r"/*": {"origins": "*"}},
        supports_credentials=False,
        expose_headers=["Content-Disposition"],
        allow_headers=["Content-Type", "Authorization", "X-Session-Id"]
    )

    @app.route('/health', methods=['GET'])
    @app.route('/api/health', methods=['GET'])
    def health_check():
        """Health check endpoint"""
        return jsonify({'status': 'healthy', 'service': 'customer-report-generator'})

    @app.route('/api/reports/<kind>/load', methods=['POST'])
    def load_report(kind):
        return _to_flask_response(handle_load(_event_from_request({'kind': kind})))

    @app.route('/api/reports/<kind>/generate', methods=['POST'])
    def generate_report(kind):
        return _to_flask_response(handle_generate(_event_from_request({'kind': kind})))

    @app.route('/api/reports/download/<session_id>/<filename>', methods=['GET'])
    def download_report(session_id, filename):
        event = _event_from_request({'session_id': session_id, 'filename': filename})
        return _to_flask_response(handle_download(event))

    @app.errorhandler(404)
    def not_found(_error):
        return Response(json.dumps({'error': 'Not found'}), status=404, mimetype='application/json')

    return app


if __name__ == '__main__':
    if not ensure_chromium_installed(logger):
        logger.error("Chromium could not be installed; report generation will fail")
        sys.exit(1)
    create_app().run(debug=True, host='0.0.0.0', port=int(os.environ.get('PORT', '5002')), threaded=True)
