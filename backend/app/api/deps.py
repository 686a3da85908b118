"""
Shared route dependencies: DB session, bearer-token identity, operator/player resolution,
and the notifier + clock the waitlist services run with (overridable in tests).
"""
from dataclasses import dataclass

import jwt
from fastapi import Depends, HTTPException, Path
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from app.config import settings
from app.core.errors import MSG_ACCESS_DENIED, MSG_UNAUTHORIZED, STATUS_FORBIDDEN, STATUS_NOT_FOUND, STATUS_UNAUTHORIZED
from app.db.session import SessionLocal, get_db
from app.models.player import Player
from app.models.room_operator import Operator
from app.services.waitlist import (
    ExpirySweeper,
    PlayerNotificationService,
    SqlWaitlistStore,
    WaitlistNotifier,
    WaitlistPositionManager,
    WaitlistStatusManager,
    utcnow,
)
from app.services.table_seating_service import TableSeatingService

bearer_scheme = HTTPBearer(auto_error=False)


@dataclass
class CurrentUser:
    auth_id: str
    claims: dict


def get_current_user(credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme)) -> CurrentUser:
    unauthorized = HTTPException(
        status_code=STATUS_UNAUTHORIZED,
        detail=MSG_UNAUTHORIZED,
        headers={"WWW-Authenticate": "Bearer"},
    )
    if credentials is None or not credentials.credentials:
        raise unauthorized
    try:
        claims = jwt.decode(credentials.credentials, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except jwt.PyJWTError:
        raise unauthorized
    sub = claims.get("sub")
    if not sub:
        raise unauthorized
    return CurrentUser(auth_id=str(sub), claims=claims)


def require_operator(
    room_id: str = Path(...),
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Operator:
    operator = (
        db.query(Operator)
        .filter(Operator.auth_id == user.auth_id, Operator.room_id == room_id, Operator.is_active.is_(True))
        .first()
    )
    if operator is None:
        raise HTTPException(status_code=STATUS_FORBIDDEN, detail=MSG_ACCESS_DENIED)
    return operator


def get_current_player(user: CurrentUser = Depends(get_current_user), db: Session = Depends(get_db)) -> Player:
    player = db.query(Player).filter(Player.auth_id == user.auth_id).first()
    if player is None:
        raise HTTPException(status_code=STATUS_NOT_FOUND, detail="Player profile not found")
    return player


def get_notifier() -> WaitlistNotifier:
    return PlayerNotificationService(SessionLocal)


def get_clock():
    return utcnow


def get_status_manager(
    db: Session = Depends(get_db),
    notifier: WaitlistNotifier = Depends(get_notifier),
    clock=Depends(get_clock),
) -> WaitlistStatusManager:
    return WaitlistStatusManager(SqlWaitlistStore(db), notifier, clock=clock)


def get_sweeper(
    db: Session = Depends(get_db),
    notifier: WaitlistNotifier = Depends(get_notifier),
    clock=Depends(get_clock),
) -> ExpirySweeper:
    return ExpirySweeper(SqlWaitlistStore(db), notifier, clock=clock)


def get_position_manager(
    db: Session = Depends(get_db),
    notifier: WaitlistNotifier = Depends(get_notifier),
    clock=Depends(get_clock),
) -> WaitlistPositionManager:
    return WaitlistPositionManager(SqlWaitlistStore(db), notifier, clock=clock)


def get_seating_service(status_manager: WaitlistStatusManager = Depends(get_status_manager)) -> TableSeatingService:
    return TableSeatingService(status_manager.store, status_manager)
