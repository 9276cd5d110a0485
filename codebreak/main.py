'''
Codebreak API: two-player "crack the secret number".

Endpoints:
POST /matches                       -> create a match (synthetic or human opponent)
POST /matches/{id}/join             -> take the open seat of a human match
PUT  /matches/{id}/secret           -> set your secret (once)
POST /matches/{id}/guesses          -> guess the opponent's secret on your turn
GET  /matches/{id}                  -> current state (polling / reconciliation)
GET  /matches/{id}/moves            -> move journal, optionally per participant
POST /matches/{id}/synthetic-turn   -> nudge the synthetic opponent if it holds the turn
GET  /participants/{id}/matches     -> matches a participant plays in
WS   /ws/matches/{id}               -> live transition events

The caller's identity is the opaque X-Participant-Id header.
All mutations go through MatchCoordinator (per-match lock).
'''

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import List, Optional

from fastapi import BackgroundTasks, Depends, FastAPI, Header, Request, WebSocket
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool

from .config import get_settings
from .coordinator import MatchCoordinator, MatchLocks
from .db import get_db, get_session_factory
from .errors import (
    AlreadySetError,
    GameError,
    InvalidCodeError,
    InvalidRequestError,
    LockTimeoutError,
    NotFoundError,
    NotInProgressError,
    NotYourTurnError,
    ReservedParticipantError,
    SeatTakenError,
    UnknownParticipantError,
)
from .relay import AsyncSubscription, NotificationRelay
from .repository import DBMatchRepository
from .schemas import (
    CreateMatchRequest,
    ErrorOut,
    GuessRequest,
    GuessResponse,
    MatchOut,
    MatchSummaryOut,
    MoveOut,
    SecretRequest,
)
from .state_machine import MatchStateMachine
from .types import SYNTHETIC_PARTICIPANT_ID

settings = get_settings()

logging.basicConfig(level=settings.log_level)
logger = logging.getLogger(__name__)

# Process-wide: every request for a match must see the same lock and topics
match_locks = MatchLocks()
relay = NotificationRelay(queue_size=settings.relay_queue_size)

STATUS_BY_ERROR = [
    (InvalidCodeError, 400),
    (InvalidRequestError, 400),
    (UnknownParticipantError, 403),
    (ReservedParticipantError, 403),
    (NotFoundError, 404),
    (AlreadySetError, 409),
    (NotInProgressError, 409),
    (NotYourTurnError, 409),
    (SeatTakenError, 409),
    (LockTimeoutError, 503),
]

# Documented on every route; the body is GameError.to_dict()
ERROR_RESPONSES = {status: {"model": ErrorOut} for status in (400, 403, 404, 409, 503)}


@asynccontextmanager
async def lifespan(app):
    # Dev convenience: auto-create tables locally
    if settings.app_env == "local":
        from .bootstrap_db import create_all
        create_all()
    yield


app = FastAPI(title="Codebreak API", version="1.0.0", lifespan=lifespan)

# Allow everything in dev so the docs and front-end work easily
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"]
)


@app.exception_handler(GameError)
async def _game_error_handler(request: Request, exc: GameError) -> JSONResponse:
    status = 400
    for error_type, code in STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            status = code
            break
    logger.info("%s %s rejected: %s", request.method, request.url.path, exc.code)
    return JSONResponse(status_code=status, content=exc.to_dict())


# ---------------- Dependencies ----------------

def build_coordinator(db) -> MatchCoordinator:
    machine = MatchStateMachine(
        DBMatchRepository(db),
        code_length=settings.code_length,
        use_random_org=settings.random_org_enabled,
    )
    return MatchCoordinator(machine, match_locks, relay, lock_timeout=settings.lock_timeout_seconds)


# Small factory so routes get a per-request coordinator (bound to the current DB session)
def get_coordinator(db=Depends(get_db)) -> MatchCoordinator:
    return build_coordinator(db)


def get_participant_id(x_participant_id: str = Header(..., min_length=1, max_length=64)) -> str:
    if x_participant_id == SYNTHETIC_PARTICIPANT_ID:
        raise ReservedParticipantError(x_participant_id)
    return x_participant_id


def run_synthetic_turn(session_factory, match_id: str) -> None:
    """Background job: its own session, since the request's is closed by now."""
    db = session_factory()
    try:
        build_coordinator(db).play_synthetic_turn(match_id)
    except GameError as exc:
        # The match keeps the synthetic turn; POST /synthetic-turn retries it.
        logger.warning("synthetic turn for match %s failed: %s", match_id, exc.code)
    finally:
        db.close()


def _load_for(coordinator: MatchCoordinator, match_id: str, participant_id: str):
    match = coordinator.get_match(match_id)
    if not match.is_participant(participant_id):
        raise UnknownParticipantError(match_id, participant_id)
    return match


# ---------------- Routes ----------------

@app.post("/matches", response_model=MatchOut, responses=ERROR_RESPONSES, summary="Create a match")
def create_match(
    payload: CreateMatchRequest,
    participant_id: str = Depends(get_participant_id),
    coordinator: MatchCoordinator = Depends(get_coordinator),
) -> MatchOut:
    try:
        match = coordinator.create_match(
            participant_id, payload.opponent_id, payload.mode, payload.difficulty
        )
    except ValueError as ve:
        raise InvalidRequestError(str(ve))
    return MatchOut.for_viewer(match, participant_id)


@app.post("/matches/{match_id}/join", response_model=MatchOut, responses=ERROR_RESPONSES, summary="Join an open match")
def join_match(
    match_id: str,
    participant_id: str = Depends(get_participant_id),
    coordinator: MatchCoordinator = Depends(get_coordinator),
) -> MatchOut:
    match = coordinator.join_match(match_id, participant_id)
    return MatchOut.for_viewer(match, participant_id)


@app.put("/matches/{match_id}/secret", response_model=MatchOut, responses=ERROR_RESPONSES, summary="Set your secret")
def set_secret(
    match_id: str,
    payload: SecretRequest,
    participant_id: str = Depends(get_participant_id),
    coordinator: MatchCoordinator = Depends(get_coordinator),
) -> MatchOut:
    match = coordinator.set_secret(match_id, participant_id, payload.code)
    return MatchOut.for_viewer(match, participant_id)


@app.post("/matches/{match_id}/guesses", response_model=GuessResponse, responses=ERROR_RESPONSES, summary="Submit a guess")
def submit_guess(
    match_id: str,
    payload: GuessRequest,
    background_tasks: BackgroundTasks,
    participant_id: str = Depends(get_participant_id),
    coordinator: MatchCoordinator = Depends(get_coordinator),
    session_factory=Depends(get_session_factory),
) -> GuessResponse:
    outcome = coordinator.submit_guess(match_id, participant_id, payload.guess, payload.expected_turn)
    match = outcome.match

    if match.turn_holder == SYNTHETIC_PARTICIPANT_ID:
        background_tasks.add_task(run_synthetic_turn, session_factory, match_id)

    return GuessResponse(
        move=MoveOut.from_move(outcome.move),
        match_finished=outcome.match_finished,
        turn_holder=match.turn_holder,
        winner=match.winner,
        opponent_secret=(match.secret_of(match.opponent_of(participant_id))
                         if outcome.match_finished else None),
    )


@app.post("/matches/{match_id}/synthetic-turn", response_model=Optional[MoveOut],
          responses=ERROR_RESPONSES, summary="Let the synthetic opponent move if it holds the turn")
def synthetic_turn(
    match_id: str,
    participant_id: str = Depends(get_participant_id),
    coordinator: MatchCoordinator = Depends(get_coordinator),
) -> Optional[MoveOut]:
    _load_for(coordinator, match_id, participant_id)
    outcome = coordinator.play_synthetic_turn(match_id)
    return MoveOut.from_move(outcome.move) if outcome else None


@app.get("/matches/{match_id}", response_model=MatchOut, responses=ERROR_RESPONSES, summary="Get current match state")
def get_match(
    match_id: str,
    participant_id: str = Depends(get_participant_id),
    coordinator: MatchCoordinator = Depends(get_coordinator),
) -> MatchOut:
    match = _load_for(coordinator, match_id, participant_id)
    return MatchOut.for_viewer(match, participant_id)


@app.get("/matches/{match_id}/moves", response_model=List[MoveOut], responses=ERROR_RESPONSES, summary="Get the move journal")
def get_moves(
    match_id: str,
    of: Optional[str] = None,
    participant_id: str = Depends(get_participant_id),
    coordinator: MatchCoordinator = Depends(get_coordinator),
) -> List[MoveOut]:
    _load_for(coordinator, match_id, participant_id)
    return [MoveOut.from_move(m) for m in coordinator.get_move_journal(match_id, of)]


@app.get("/participants/{player_id}/matches", response_model=List[MatchSummaryOut],
         responses=ERROR_RESPONSES, summary="List a participant's matches")
def list_matches(
    player_id: str,
    coordinator: MatchCoordinator = Depends(get_coordinator),
) -> List[MatchSummaryOut]:
    return [
        MatchSummaryOut(
            match_id=m.id,
            opponent_id=m.opponent_of(player_id),
            mode=m.mode,
            phase=m.phase,
            winner=m.winner,
            created_at=m.created_at,
        )
        for m in coordinator.list_matches(player_id)
    ]


# ---- Live events (best effort; clients fall back to GET /matches/{id}) ----

def _lookup_match(session_factory, match_id: str):
    # Short-lived session: a long-lived socket must not keep a pooled connection checked out
    with session_factory() as db:
        return DBMatchRepository(db).load_match(match_id)


async def _pump_events(websocket: WebSocket, subscription: AsyncSubscription) -> None:
    while True:
        event = await subscription.next()
        await websocket.send_text(event.model_dump_json())


async def _wait_for_disconnect(websocket: WebSocket) -> None:
    # The stream is one-way; incoming frames are ignored until the client leaves
    while True:
        message = await websocket.receive()
        if message["type"] == "websocket.disconnect":
            return


@app.websocket("/ws/matches/{match_id}")
async def match_events(
    websocket: WebSocket,
    match_id: str,
    participant_id: str,
    session_factory=Depends(get_session_factory),
) -> None:
    try:
        match = await run_in_threadpool(_lookup_match, session_factory, match_id)
    except NotFoundError:
        await websocket.close(code=4404)
        return
    if not match.is_participant(participant_id):
        await websocket.close(code=4403)
        return

    # Subscribe before accepting so nothing published after the handshake is missed
    subscription = relay.subscribe_async(match_id)
    tasks = []
    try:
        await websocket.accept()
        tasks = [
            asyncio.ensure_future(_pump_events(websocket, subscription)),
            asyncio.ensure_future(_wait_for_disconnect(websocket)),
        ]
        done, _ = await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
        for task in done:
            if not task.cancelled() and task.exception() is not None:
                logger.debug("event stream of %s ended: %r", match_id, task.exception())
    finally:
        for task in tasks:
            task.cancel()
        subscription.close()
        logger.debug("participant %s left the event stream of %s", participant_id, match_id)
