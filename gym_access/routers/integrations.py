"""Per-branch vendor API credentials used by the fetch path and the poller."""

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from gym_access.database import get_db
from gym_access.models.access_integration import AccessIntegration
from gym_access.schemas.integration import IntegrationUpdate, IntegrationOut
from gym_access.utils.time_utils import utcnow

router = APIRouter()


@router.get("/branches/{branch_id}/integration", response_model=IntegrationOut,
            summary="Get a branch's access-control integration")
def get_integration(branch_id: str, db: Session = Depends(get_db)):
    integration = db.query(AccessIntegration).filter(AccessIntegration.branch_id == branch_id).first()
    if not integration:
        raise HTTPException(status_code=404, detail=f"No integration for branch '{branch_id}'")
    return integration


@router.put("/branches/{branch_id}/integration", response_model=IntegrationOut,
            summary="Create or update a branch's access-control integration")
def put_integration(branch_id: str, body: IntegrationUpdate, db: Session = Depends(get_db)):
    integration = db.query(AccessIntegration).filter(AccessIntegration.branch_id == branch_id).first()
    if not integration:
        integration = AccessIntegration(branch_id=branch_id)
        db.add(integration)
    integration.api_url = body.api_url
    integration.app_key = body.app_key
    integration.app_secret = body.app_secret
    integration.is_active = body.is_active
    # New credentials invalidate any cached vendor token
    integration.access_token = None
    integration.token_expires_at = None
    integration.updated_at = utcnow()
    db.commit()
    db.refresh(integration)
    return integration
