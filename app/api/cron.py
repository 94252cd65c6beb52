from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.api.deps import require_cron_secret
from app.db.session import get_db
from app.schemas.cron import ChargeRunResponse
from app.services.vipps_charges import run_vipps_charges

router = APIRouter()


@router.get("/vipps-charges", response_model=ChargeRunResponse, response_model_by_alias=True)
def vipps_charges(db: Session = Depends(get_db), _: None = Depends(require_cron_secret)):
    """Daily trigger. Requests the next charge for every active monthly Vipps agreement."""
    return run_vipps_charges(db)
