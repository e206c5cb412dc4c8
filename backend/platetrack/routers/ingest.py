from fastapi import APIRouter, BackgroundTasks, Depends, Response
from sqlalchemy.orm import Session

from ..db import get_db
from ..deps import current_settings, get_broadcaster, get_notifier, require_api_key
from ..live import Broadcaster
from ..services.ingest import ingest_event
from ..services.notify import Notifier
from ..settings import Settings
from .. import schemas

router = APIRouter(prefix="/api/v1", tags=["ingest"])


@router.post(
    "/plate-reads",
    response_model=schemas.IngestResponse,
    status_code=201,
    dependencies=[Depends(require_api_key)],
)
def ingest_plate_read(
    body: schemas.IngestRequest,
    response: Response,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    settings: Settings = Depends(current_settings),
    notifier: Notifier = Depends(get_notifier),
    broadcaster: Broadcaster = Depends(get_broadcaster),
):
    """
    Accept one detection event: a `memo` of `label:confidence` pairs or a
    single `plate_number`. 201 when at least one read is new, 409 when every
    candidate was already recorded, 500 when none could be stored.
    """
    outcome = ingest_event(
        db,
        max_records=settings.max_records,
        notifier=notifier,
        broadcaster=broadcaster,
        memo=body.memo,
        plate_number=body.plate_number,
        timestamp=body.timestamp,
        camera_name=body.camera_name,
        image_data=body.image,
        schedule=background_tasks.add_task,
    )
    response.status_code = outcome.status_code
    return outcome.as_dict()
