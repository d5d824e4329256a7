"""
Gmail Sync Router - manual trigger and loop control.

GET runs one tick immediately; POST starts, stops or reports the
background loop. Both are restricted to administrator roles.
"""

from typing import Literal

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel

from llanogas.core.deps import require_csrf_header, require_roles
from llanogas.core.rate_limit import SYNC_LIMIT, limiter
from llanogas.db.enums import ROLES_CAN_SYNC_MAIL
from llanogas.schemas.auth import UserSession
from llanogas.services.gmail_sync_service import GmailSyncService, get_gmail_sync_service

router = APIRouter()


class SyncControlRequest(BaseModel):
    action: Literal["start", "stop", "status"]


@router.get("/sync")
@limiter.limit(SYNC_LIMIT)
async def run_sync(
    request: Request,
    session: UserSession = Depends(require_roles(ROLES_CAN_SYNC_MAIL)),
    service: GmailSyncService = Depends(get_gmail_sync_service),
):
    """Run one sync tick now (no-op if a tick is already running)."""
    report = await service.sync_now()
    if report.skipped:
        message = "Sincronización ya en progreso"
    elif report.error:
        message = f"Error en la sincronización: {report.error}"
    else:
        message = "Sincronización completada"
    return {"message": message, **report.to_dict()}


@router.post("/sync", dependencies=[Depends(require_csrf_header)])
async def control_sync(
    data: SyncControlRequest,
    session: UserSession = Depends(require_roles(ROLES_CAN_SYNC_MAIL)),
    service: GmailSyncService = Depends(get_gmail_sync_service),
):
    if data.action == "start":
        started = service.start()
        message = "Servicio de sincronización iniciado" if started else "El servicio ya estaba iniciado"
    elif data.action == "stop":
        stopped = service.stop()
        message = "Servicio de sincronización detenido" if stopped else "El servicio no estaba iniciado"
    else:
        message = "Estado del servicio"
    return {"message": message, "status": service.get_status()}
