import math
from typing import Optional

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session
from .. import database, schemas
from ..listings import ListingError, get_public_programs

DEFAULT_LIMIT = 6
MAX_LIMIT = 50

router = APIRouter(
    prefix="/api",
    tags=["public"]
)

def parse_non_negative_int(value: Optional[str], fallback: int) -> int:
    """Floor a numeric query value; anything missing, non-numeric or negative gives `fallback`."""
    try:
        parsed = float(value)
    except (TypeError, ValueError):
        return fallback
    if not math.isfinite(parsed):
        return fallback
    floored = math.floor(parsed)
    return floored if floored >= 0 else fallback

def listing_window(offset: Optional[str], limit: Optional[str]):
    start = parse_non_negative_int(offset, 0)
    size = min(MAX_LIMIT, max(1, parse_non_negative_int(limit, DEFAULT_LIMIT)))
    return start, size

@router.get("/programs", response_model=schemas.PublicPrograms)
def read_public_programs(offset: Optional[str] = None, limit: Optional[str] = None, db: Session = Depends(database.get_db)):
    start, size = listing_window(offset, limit)
    try:
        programs, has_more = get_public_programs(db, offset=start, limit=size)
    except ListingError as e:
        return JSONResponse({"error": str(e)}, status_code=500)
    return {"programs": programs, "hasMore": has_more}
