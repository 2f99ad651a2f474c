# Overview: Flask API routes for system health and version information.

"""
System health and version endpoints.

Health covers the database, the template registry and the document
storage root. The converter is a separate service with its own /health.
"""

import os
import time
from flask import Blueprint, current_app
from sqlalchemy import text
from ..extensions import db
from ..models import Organization, Document
from ..time_utils import utcnow

system_bp = Blueprint("system", __name__)


def check_database_health() -> dict:
    """
    Check database connectivity and basic operations.

    Returns dict with status and details.
    """
    start_time = time.time()
    try:
        db.session.execute(text("SELECT 1"))
        org_count = db.session.query(Organization).count()
        document_count = db.session.query(Document).count()

        elapsed_ms = (time.time() - start_time) * 1000

        return {
            "status": "healthy",
            "latency_ms": round(elapsed_ms, 2),
            "details": {
                "organizations": org_count,
                "documents": document_count,
            }
        }
    except Exception:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Database error"
        }


def check_storage_health() -> dict:
    """
    Check the template registry and document storage root.

    A missing storage root is degraded rather than unhealthy: it is
    created on the first generation.
    """
    templates_dir = current_app.config["TEMPLATES_DIR"]
    data_root = current_app.config["DATA_ROOT"]

    if not os.path.isdir(templates_dir):
        return {"status": "unhealthy", "error": "Template registry not found"}

    if not os.path.isdir(data_root):
        return {"status": "degraded", "warning": "Storage root not created yet"}

    if not os.access(data_root, os.W_OK):
        return {"status": "unhealthy", "error": "Storage root is not writable"}

    return {"status": "healthy"}


@system_bp.get("/health")
def health():
    """
    Health check endpoint.

    Returns:
    - 200: healthy or degraded
    - 503: one or more checks unhealthy
    """
    start_time = time.time()

    database_health = check_database_health()
    storage_health = check_storage_health()

    all_checks = [database_health, storage_health]
    if any(check["status"] == "unhealthy" for check in all_checks):
        overall_status = "unhealthy"
        http_status = 503
    elif any(check["status"] == "degraded" for check in all_checks):
        overall_status = "degraded"
        http_status = 200
    else:
        overall_status = "healthy"
        http_status = 200

    total_elapsed_ms = (time.time() - start_time) * 1000

    response = {
        "status": overall_status,
        "timestamp": utcnow().isoformat() + "Z",
        "total_latency_ms": round(total_elapsed_ms, 2),
        "checks": {
            "database": database_health,
            "storage": storage_health,
        }
    }

    return response, http_status


@system_bp.get("/version")
def version():
    """
    Version endpoint for deployment debugging.

    Does NOT expose secret keys, credentials or internal paths.
    """
    import sys

    env = "production" if not current_app.debug else "development"

    return {
        "api_version": "1.0.0",
        "environment": env,
        "python_version": sys.version.split()[0],
        "server_time": utcnow().isoformat() + "Z",
    }
