"""
System health check endpoint.
Returns status of backend + DB + reachability of each active vendor API.
"""

import requests
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from sqlalchemy import text
from gym_access.database import get_db
from gym_access.models.access_integration import AccessIntegration
from gym_access.services.processing_queue import worker
from gym_access.utils.time_utils import utcnow

router = APIRouter()


@router.get("/health", summary="System health check")
def health_check(check_vendors: bool = True, db: Session = Depends(get_db)):
    result = {
        "status": "ok",
        "timestamp": utcnow().isoformat(),
        "backend": "ok",
        "database": "unknown",
        "processing_worker": "running" if worker.running else "stopped",
        "vendors": {},
    }

    try:
        db.execute(text("SELECT 1"))
        result["database"] = "ok"
    except Exception as e:
        result["database"] = f"error: {str(e)}"
        result["status"] = "degraded"
        return result

    if not check_vendors:
        return result

    integrations = db.query(AccessIntegration).filter(AccessIntegration.is_active.is_(True)).all()
    for integration in integrations:
        try:
            resp = requests.head(integration.api_url, timeout=3)
            result["vendors"][integration.branch_id] = "ok" if resp.status_code < 500 else f"http_{resp.status_code}"
        except requests.exceptions.ConnectionError:
            result["vendors"][integration.branch_id] = "unreachable"
            result["status"] = "degraded"
        except requests.exceptions.RequestException as e:
            result["vendors"][integration.branch_id] = f"error: {str(e)}"

    return result
