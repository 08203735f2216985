import os
import json
import logging
from typing import Callable, Dict, Any, Tuple

from playwright_environment import available_memory_mb

REPORTS_PREFIX = '/api/reports/'
DOWNLOAD_PREFIX = '/api/reports/download/'


class LambdaRouter:
    """Simple router for API Gateway events."""

    def __init__(self, verify_browser: Callable[[], bool]):
        self.verify_browser = verify_browser
        self.logger = logging.getLogger(__name__)
        self.cors_headers = {
            'Access-Control-Allow-Origin': '*',
            'Access-Control-Allow-Headers': 'Content-Type, Authorization, X-Session-Id',
            'Access-Control-Allow-Methods': 'OPTIONS, POST, GET',
            'Access-Control-Expose-Headers': 'Content-Disposition',
        }

    @staticmethod
    def _report_action(path: str) -> Tuple[str, str]:
        """Split ``/api/reports/<kind>/<action>`` into ``(kind, action)``."""
        parts = path[len(REPORTS_PREFIX):].strip('/').split('/')
        if len(parts) != 2:
            return '', ''
        return parts[0], parts[1]

    def handle(self, event: Dict[str, Any], handlers: Dict[Tuple[str, str] | str, Callable[[Dict[str, Any]], Dict[str, Any]]]) -> Dict[str, Any]:
        try:
            self.logger.info(f"Available memory: {available_memory_mb():.1f} MB")
            self.logger.info(f"PLAYWRIGHT_BROWSERS_PATH env var: {os.environ.get('PLAYWRIGHT_BROWSERS_PATH', 'Not set')}")

            path = event.get('path', '') or ''
            method = event.get('httpMethod', '') or ''

            if method == 'OPTIONS':
                return {'statusCode': 200, 'headers': self.cors_headers, 'body': ''}

            self.logger.info(f"Processing request: {method} {path}")

            func = handlers.get((method, path))
            if func is None and method == 'GET' and path.startswith(DOWNLOAD_PREFIX):
                func = handlers.get('download')
            elif func is None and method == 'POST' and path.startswith(REPORTS_PREFIX):
                kind, action = self._report_action(path)
                func = handlers.get(f'report_{action}') if kind else None
                if func is not None:
                    event = {**event, 'pathParameters': {**(event.get('pathParameters') or {}), 'kind': kind}}
                if action == 'generate' and not self.verify_browser():
                    self.logger.error("Playwright browser verification failed - rendering will try to install Chromium")

            if func:
                response = func(event)
            else:
                response = {
                    'statusCode': 404,
                    'headers': {'Content-Type': 'application/json'},
                    'body': json.dumps({'error': 'Not found'})
                }

            if 'headers' not in response:
                response['headers'] = {}
            response['headers'].update(self.cors_headers)
            return response

        except Exception as e:
            self.logger.error(f"Lambda handler error: {str(e)}")
            return {
                'statusCode': 500,
                'headers': {'Content-Type': 'application/json', **self.cors_headers},
                'body': json.dumps({'error': 'Internal server error'})
            }
