import logging
import os
import uuid
from collections import OrderedDict
from typing import List, Optional

from fastapi import FastAPI, HTTPException, Request
from pydantic import BaseModel, Field, field_validator
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded

import core
from grid import DIRECTION, GridIndexError, InvalidPlacementError, Tile

# --- Configuration ---

MIN_SIZE = 2 # Board size must be at least 2x2


def _int_setting(name: str, default: int, lower: int, upper: Optional[int] = None) -> int:
    """
    Reads an integer environment variable and checks its range.
    Args:
        name (str): Environment variable name.
        default (int): Value used when the variable is unset.
        lower (int): Smallest accepted value.
        upper (Optional[int]): Largest accepted value, if any.
    Returns:
        int: The configured value.
    Raises:
        ValueError: If the value is not an integer or is out of range.
    """
    raw = os.environ.get(name, str(default))
    try:
        value = int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}.")
    if value < lower or (upper is not None and value > upper):
        bounds = f"between {lower} and {upper}" if upper is not None else f"at least {lower}"
        raise ValueError(f"{name} must be {bounds}, got {value}.")
    return value


RATE_LIMIT = os.environ.get("GAME_RATE_LIMIT", "100/minute")
MAX_SIZE = _int_setting("GAME_MAX_SIZE", 16, MIN_SIZE)
DEFAULT_SIZE = _int_setting("GAME_DEFAULT_SIZE", 4, MIN_SIZE, MAX_SIZE)
MAX_SESSIONS = _int_setting("GAME_MAX_SESSIONS", 1000, 1)
LOG_LEVEL = os.environ.get("GAME_LOG_LEVEL", "INFO").upper()

logging.basicConfig(
    level=LOG_LEVEL,
    format='%(asctime)s - %(levelname)s - %(message)s',
)
logger = logging.getLogger(__name__)

# Initialize the rate limiter
limiter = Limiter(key_func=get_remote_address)
app = FastAPI(
    title="2048 Rules Engine API",
    description="Drives independent 2048 game sessions held in server memory. "\
                "The client decides where new tiles appear.",
    version="1.0.0"
)
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# One engine per session, oldest first. Engines are not shared between sessions.
# At most MAX_SESSIONS are held; creating one more evicts the oldest.
_games: "OrderedDict[str, core.GameEngine]" = OrderedDict()

# --- Pydantic Models for API requests and responses ---

class NewGameSettings(BaseModel):
    """Settings for creating a new game."""
    size: Optional[int] = Field(
        default=None,
        ge=MIN_SIZE,
        le=MAX_SIZE,
        description="Size of the N x N game board. Ignored when `board` is given."
    )
    board: Optional[List[List[int]]] = Field(
        default=None,
        description="Optional starting position, top row first, 0 for an empty cell."
    )
    score: int = Field(default=0, ge=0, description="Starting score (only with `board`).")
    max_score: int = Field(default=0, ge=0, description="Starting max score (only with `board`).")

    @field_validator("board")
    @classmethod
    def board_within_limits(cls, board: Optional[List[List[int]]]) -> Optional[List[List[int]]]:
        if board is None:
            return board
        if not MIN_SIZE <= len(board) <= MAX_SIZE or any(len(row) > MAX_SIZE for row in board):
            raise ValueError(f"Board must be between {MIN_SIZE}x{MIN_SIZE} and {MAX_SIZE}x{MAX_SIZE}.")
        return board

class GameStateData(BaseModel):
    """Represents the complete state of a game instance."""
    game_id: str = Field(..., description="Identifier of the game session.")
    board: List[List[int]] = Field(..., description="The N x N game board, top row first.")
    score: int = Field(..., ge=0, description="Current score of the game.")
    max_score: int = Field(..., ge=0, description="Score recorded at the most recent game over.")
    progress: core.GameProgressState = Field(
        ...,
        description="Current progress state of the game (IN_PROGRESS, GAME_WON, GAME_OVER)."
    )
    game_over: bool = Field(..., description="True once a 2048 tile exists or no move is left.")
    board_size: int = Field(..., gt=0, description="The dimension N of the N x N board.")

class TilePlacement(BaseModel):
    """A tile to place on an empty cell. Row 0 is the bottom row."""
    value: int = Field(..., gt=0, description="Tile value, a power of two.")
    column: int = Field(..., ge=0)
    row: int = Field(..., ge=0)

class TiltRequestData(BaseModel):
    """Data required to tilt the board."""
    direction: DIRECTION = Field(..., description="Direction of the tilt (UP, DOWN, LEFT, RIGHT).")

class TiltResponseData(GameStateData):
    """Response after a tilt, including the new game state and move effectiveness."""
    move_was_effective: bool = Field(
        ...,
        description="True if the tilt changed the board, False otherwise."
    )
    score_gained: int = Field(..., ge=0, description="Score earned by merges during this tilt.")
    message: Optional[str] = Field(
        default=None,
        description="An optional message, e.g., if a tilt had no effect or the game ended."
    )

# --- Helpers ---

def _get_engine(game_id: str) -> core.GameEngine:
    engine = _games.get(game_id)
    if engine is None:
        raise HTTPException(status_code=404, detail=f"Unknown game: {game_id}")
    return engine

def _snapshot(game_id: str, engine: core.GameEngine) -> dict:
    return dict(
        game_id=game_id,
        board=engine.grid.values(),
        score=engine.score,
        max_score=engine.max_score,
        progress=engine.progress(),
        game_over=engine.game_over(),
        board_size=engine.size,
    )

# --- API Endpoints ---

@app.post("/games", response_model=GameStateData, status_code=201, summary="Start a New 2048 Game")
@limiter.limit(RATE_LIMIT)
async def start_new_game(request: Request, settings: NewGameSettings):
    """
    Creates a new game session.

    - **size**: Dimension of the N x N board. Defaults to GAME_DEFAULT_SIZE.
    - **board**, **score**, **max_score**: Optional exact starting position,
      for setting up deterministic scenarios.

    The board starts empty unless `board` is given; place tiles with
    `POST /games/{game_id}/tiles`.
    """
    try:
        if settings.board is not None:
            engine = core.GameEngine.from_values(settings.board, settings.score, settings.max_score)
        else:
            engine = core.GameEngine(settings.size if settings.size is not None else DEFAULT_SIZE)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    game_id = uuid.uuid4().hex
    while len(_games) >= MAX_SESSIONS:
        evicted_id, _ = _games.popitem(last=False)
        logger.info("Evicted game %s (session limit %d reached)", evicted_id, MAX_SESSIONS)
    _games[game_id] = engine
    logger.info("Created game %s (%dx%d)", game_id, engine.size, engine.size)
    return GameStateData(**_snapshot(game_id, engine))


@app.get("/games/{game_id}", response_model=GameStateData, summary="Get a Game's State")
@limiter.limit(RATE_LIMIT)
async def get_game(request: Request, game_id: str):
    engine = _get_engine(game_id)
    return GameStateData(**_snapshot(game_id, engine))


@app.post("/games/{game_id}/tiles", response_model=GameStateData, summary="Place a Tile")
@limiter.limit(RATE_LIMIT)
async def place_tile(request: Request, game_id: str, placement: TilePlacement):
    """
    Places one tile on an empty cell. Spawning policy (which value, where)
    is the client's decision.
    """
    engine = _get_engine(game_id)
    try:
        engine.add_tile(Tile(placement.value, placement.column, placement.row))
    except InvalidPlacementError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except (GridIndexError, ValueError) as e:
        raise HTTPException(status_code=400, detail=str(e))
    return GameStateData(**_snapshot(game_id, engine))


@app.post("/games/{game_id}/tilt", response_model=TiltResponseData, summary="Tilt the Board")
@limiter.limit(RATE_LIMIT)
async def tilt(request: Request, game_id: str, request_data: TiltRequestData):
    """
    Tilts the board toward the requested direction.

    Tiles slide and merge, the score grows by the value of every merged tile,
    and game over is re-evaluated. No tile is added afterwards.
    """
    engine = _get_engine(game_id)
    score_before = engine.score
    try:
        move_was_effective = engine.tilt(request_data.direction)
    except Exception as e:
        # Any failure here is a broken engine invariant.
        logger.exception("Unexpected error tilting game %s", game_id)
        raise HTTPException(status_code=500, detail=f"An unexpected server error occurred while tilting: {str(e)}")

    message_for_client: Optional[str] = None
    if not move_was_effective:
        message_for_client = "Tilt was not effective; board state unchanged."
    progress = engine.progress()
    if progress == core.GameProgressState.GAME_WON:
        message_for_client = "Congratulations! You won!"
    elif progress == core.GameProgressState.GAME_OVER:
        message_for_client = "Game Over. No more valid moves."

    return TiltResponseData(
        **_snapshot(game_id, engine),
        move_was_effective=move_was_effective,
        score_gained=engine.score - score_before,
        message=message_for_client,
    )


@app.post("/games/{game_id}/clear", response_model=GameStateData, summary="Clear the Board")
@limiter.limit(RATE_LIMIT)
async def clear_game(request: Request, game_id: str):
    """Empties the board and resets the score; the max score is kept."""
    engine = _get_engine(game_id)
    engine.clear()
    return GameStateData(**_snapshot(game_id, engine))


@app.delete("/games/{game_id}", status_code=204, summary="End a Game Session")
@limiter.limit(RATE_LIMIT)
async def delete_game(request: Request, game_id: str):
    _get_engine(game_id)
    del _games[game_id]
    logger.info("Deleted game %s", game_id)
