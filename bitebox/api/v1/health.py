"""Health check endpoint with database connectivity check."""

from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from bitebox.core.config import settings
from bitebox.core.database import check_db_connected, get_db
from bitebox.schemas.common import Envelope
from bitebox.schemas.health import HealthData

router = APIRouter()


@router.get("", response_model=Envelope[HealthData])
def get_health(db: Annotated[Session, Depends(get_db)]) -> Envelope[HealthData]:
    """
    Return service health status and database connectivity.
    Used by load balancers and monitoring.
    """
    connected = check_db_connected(db)
    return Envelope[HealthData](
        message="Server is running",
        data=HealthData(
            environment=settings.APP_ENV,
            database="connected" if connected else "disconnected",
        ),
    )
