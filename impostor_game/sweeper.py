# impostor_game/sweeper.py
"""
Presence & Maintenance Sweeper.

Run on an external schedule (the /maintenance/sweep endpoint or
`python -m impostor_game.sweeper` from cron). Each step commits on its own and
a failing step is logged and skipped; the rest of the sweep still runs.
"""
import logging
from dataclasses import asdict, dataclass
from datetime import datetime, timedelta
from typing import Callable, Optional

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError

from impostor_game.config import (
    EMPTY_ROOM_GRACE_SECONDS,
    ENDED_ROOM_RETENTION_HOURS,
    PRESENCE_STALE_SECONDS,
)
from impostor_game.database import SessionLocal, utcnow
from impostor_game.db_models import DBPlayer, DBPresence, DBReadyMark, DBRoom
from impostor_game.errors import InvalidPhase
from impostor_game.models import RoomStatus
from impostor_game.state_machine import RoomEvent, apply_transition

logger = logging.getLogger(__name__)


@dataclass
class SweepReport:
    players_disconnected: int = 0
    rooms_ended: int = 0
    rooms_deleted: int = 0
    ended_rooms_cleaned: int = 0
    failed_steps: int = 0

    def to_dict(self):
        return asdict(self)


class MaintenanceSweeper:
    def __init__(
        self,
        session_factory=SessionLocal,
        stale_after: timedelta = timedelta(seconds=PRESENCE_STALE_SECONDS),
        empty_grace: timedelta = timedelta(seconds=EMPTY_ROOM_GRACE_SECONDS),
        retention: timedelta = timedelta(hours=ENDED_ROOM_RETENTION_HOURS),
    ):
        self.session_factory = session_factory
        self.stale_after = stale_after
        self.empty_grace = empty_grace
        self.retention = retention

    def run(self, now: Optional[datetime] = None) -> SweepReport:
        now = now or utcnow()
        report = SweepReport()
        steps = [
            ("disconnect stale players", self.disconnect_stale_players),
            ("end empty rooms", self.end_empty_rooms),
            ("delete expired rooms", self.delete_expired_rooms),
            ("clean ended rooms", self.clean_ended_rooms),
        ]
        for label, step in steps:
            self._run_step(label, step, now, report)
        logger.info("🧹 Sweep finished: %s", report.to_dict())
        return report

    def _run_step(self, label: str, step: Callable, now: datetime, report: SweepReport):
        db = self.session_factory()
        try:
            step(db, now, report)
        except SQLAlchemyError:
            db.rollback()
            report.failed_steps += 1
            logger.exception("⚠️ Sweep step '%s' failed, continuing", label)
        finally:
            db.close()

    def disconnect_stale_players(self, db, now: datetime, report: SweepReport):
        threshold = now - self.stale_after
        stale_ids = [
            pid for (pid,) in db.query(DBPresence.player_id).filter(DBPresence.last_seen < threshold)
        ]
        if not stale_ids:
            return
        report.players_disconnected = (
            db.query(DBPlayer)
            .filter(DBPlayer.id.in_(stale_ids), DBPlayer.connected.is_(True))
            .update({"connected": False}, synchronize_session=False)
        )
        db.commit()

    def end_empty_rooms(self, db, now: datetime, report: SweepReport):
        created_before = now - self.empty_grace
        rooms = (
            db.query(DBRoom.code, DBRoom.status)
            .filter(DBRoom.status != RoomStatus.ENDED.value, DBRoom.created_at < created_before)
            .all()
        )
        for code, status in rooms:
            connected = db.query(func.count(DBPlayer.id)).filter(
                DBPlayer.room_code == code, DBPlayer.connected.is_(True)
            ).scalar()
            if connected:
                continue
            try:
                apply_transition(db, code, status, RoomEvent.ROOM_EMPTY)
            except InvalidPhase:
                # moved by a player since we looked; next sweep will see it
                logger.warning("Room %s changed during sweep, skipping", code)
                continue
            db.commit()
            report.rooms_ended += 1
            logger.info("Room %s ended: no connected players", code)

    def delete_expired_rooms(self, db, now: datetime, report: SweepReport):
        created_before = now - self.retention
        report.rooms_deleted = (
            db.query(DBRoom)
            .filter(DBRoom.status == RoomStatus.ENDED.value, DBRoom.created_at < created_before)
            .delete(synchronize_session=False)
        )
        db.commit()

    def clean_ended_rooms(self, db, now: datetime, report: SweepReport):
        codes = [code for (code,) in db.query(DBRoom.code).filter(DBRoom.status == RoomStatus.ENDED.value)]
        if not codes:
            return
        db.query(DBPlayer).filter(DBPlayer.room_code.in_(codes), DBPlayer.connected.is_(True)).update(
            {"connected": False}, synchronize_session=False
        )
        db.query(DBPresence).filter(DBPresence.room_code.in_(codes)).delete(synchronize_session=False)
        db.query(DBReadyMark).filter(DBReadyMark.room_code.in_(codes)).delete(synchronize_session=False)
        db.commit()
        report.ended_rooms_cleaned = len(codes)


if __name__ == "__main__":
    from impostor_game.database import init_db

    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    init_db()
    MaintenanceSweeper().run()
