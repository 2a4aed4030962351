from typing import Optional

from fastapi import APIRouter, Depends, Header

from impostor_game import config
from impostor_game.errors import Forbidden
from impostor_game.sweeper import MaintenanceSweeper

router = APIRouter(prefix="/api/maintenance", tags=["maintenance"])
sweeper = MaintenanceSweeper()


def get_sweeper() -> MaintenanceSweeper:
    return sweeper


@router.post("/sweep")
def sweep(
    x_maintenance_key: Optional[str] = Header(default=None),
    sweeper: MaintenanceSweeper = Depends(get_sweeper),
):
    """Operational trigger for the maintenance sweep (cron, scheduler)."""
    if config.MAINTENANCE_KEY and x_maintenance_key != config.MAINTENANCE_KEY:
        raise Forbidden("Maintenance key required")
    report = sweeper.run()
    return {"ok": True, **report.to_dict()}
