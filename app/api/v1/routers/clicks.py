from fastapi import APIRouter, Depends
import logging

from app.api.deps import event_logger_dep, settings_dep
from app.api.v1.schemas.reco import ClickRequest, ClickResponse
from app.core.config import Settings
from app.domain.services.event_log_svc import EventLogger

logger = logging.getLogger(__name__)

router = APIRouter(tags=["events"])


@router.post("/recommendations/clicks", response_model=ClickResponse)
async def record_click(
    req: ClickRequest,
    event_logger: EventLogger = Depends(event_logger_dep),
    settings: Settings = Depends(settings_dep),
):
    """
    Attribute a click to a served recommendation set.
    Without eventId, the user's most recent set for the current experiment is used.
    The first click on a set wins; repeating it is harmless.
    """
    logger.info(
        "Request: click user_id=%s, product_id=%s, event_id=%s",
        req.user_id, req.clicked_product_id, req.event_id,
    )
    attribution = await event_logger.log_click(
        user_id=req.user_id,
        clicked_product_id=req.clicked_product_id,
        experiment=settings.experiment_name,
        event_id=req.event_id,
    )
    return ClickResponse(**attribution.model_dump())
