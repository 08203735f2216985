import json
import boto3
import logging
from typing import Dict, Any

from router import LambdaRouter
from handlers import (
    create_download_handler,
    create_report_generate_handler,
    create_report_load_handler,
)

from logging_utils import configure_logging
from playwright_environment import (
    cleanup_browser_processes as cleanup_playwright_artifacts,
    verify_playwright_installation as verify_playwright_env,
)
from report_service import create_report_service
from report_settings import resolve_report_settings
from report_storage import ReportStorage


configure_logging()
logger = logging.getLogger(__name__)
logger.debug("Logging configured: level=%s, handlers=%s", logging.getLevelName(logger.level), len(logging.getLogger().handlers))

settings = resolve_report_settings()

# Initialize S3 client
s3_client = boto3.client('s3') if settings.s3_bucket else None
storage = ReportStorage(logger, s3_client=s3_client, bucket=settings.s3_bucket, storage_dir=settings.storage_dir)
report_service = create_report_service(logger, settings, storage)

# =====================
# Request handlers
# =====================

handle_report_load = create_report_load_handler(logger=logger, service=report_service)
handle_report_generate = create_report_generate_handler(logger=logger, service=report_service)
handle_download = create_download_handler(logger=logger, storage=storage)


def handle_health(event: Dict[str, Any]) -> Dict[str, Any]:
    """Handle health check."""
    return {
        'statusCode': 200,
        'headers': {'Content-Type': 'application/json'},
        'body': json.dumps({'status': 'healthy', 'service': 'customer-report-generator'})
    }


def cleanup_browser_processes() -> None:
    cleanup_playwright_artifacts(logger)


def verify_playwright_installation() -> bool:
    return verify_playwright_env(logger)


router = LambdaRouter(verify_playwright_installation)
HANDLERS = {
    ("GET", "/api/health"): handle_health,
    "report_load": handle_report_load,
    "report_generate": handle_report_generate,
    "download": handle_download,
}


def lambda_handler(event, context):
    """Main Lambda entry point."""
    try:
        return router.handle(event, HANDLERS)
    finally:
        cleanup_browser_processes()
        logger.info("Lambda handler completed")
