from datetime import date
from typing import List, Optional
from urllib.parse import quote

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from fastapi.responses import JSONResponse, RedirectResponse
from sqlalchemy.orm import Session
from .. import browse, database, schemas
from ..listings import ListingError, get_public_programs
from ..slugs import normalize_slug
from .public import DEFAULT_LIMIT

router = APIRouter(
    tags=["pages"]
)

def _program_or_404(db: Session, identifier: str):
    program, canonical = browse.find_program(db, normalize_slug(identifier))
    if program is None:
        raise HTTPException(status_code=404, detail="Program not found")
    return program, canonical

@router.get("/", include_in_schema=False)
def root():
    return RedirectResponse(url="/programs")

@router.get("/programs", response_model=schemas.PublicPrograms)
def programs_page(db: Session = Depends(database.get_db)):
    try:
        programs, has_more = get_public_programs(db, offset=0, limit=DEFAULT_LIMIT)
    except ListingError as e:
        return JSONResponse({"error": str(e)}, status_code=500)
    return {"programs": programs, "hasMore": has_more}

@router.get("/programs/{program_slug}", response_model=schemas.ProgramCities)
def program_page(program_slug: str, db: Session = Depends(database.get_db)):
    program, canonical = _program_or_404(db, program_slug)
    if canonical:
        return RedirectResponse(url=f"/programs/{quote(canonical, safe='')}", status_code=status.HTTP_302_FOUND)
    return {"program": program, "cities": browse.program_city_cards(db, program)}

@router.get("/programs/{program_slug}/centers/{city_slug}", response_model=schemas.CitySessions)
def program_city_page(
    request: Request,
    program_slug: str,
    city_slug: str,
    venue: Optional[str] = None,
    requested: Optional[date] = Query(None, alias="date"),
    db: Session = Depends(database.get_db),
):
    if normalize_slug(program_slug) == browse.ALL_PROGRAMS_SLUG:
        return browse.city_sessions(db, None, city_slug, venue=venue, requested=requested)

    program, canonical = _program_or_404(db, program_slug)
    if canonical:
        url = f"/programs/{quote(canonical, safe='')}/centers/{quote(city_slug, safe='')}"
        if request.url.query:
            url = f"{url}?{request.url.query}"
        return RedirectResponse(
            url=url,
            status_code=status.HTTP_302_FOUND,
        )
    return browse.city_sessions(db, program, city_slug, venue=venue, requested=requested)

@router.get("/programs/{program_slug}/venues/{venue_slug}", response_model=schemas.VenueSessions)
def program_venue_page(program_slug: str, venue_slug: str, db: Session = Depends(database.get_db)):
    program, canonical = _program_or_404(db, program_slug)
    if canonical:
        return RedirectResponse(
            url=f"/programs/{quote(canonical, safe='')}/venues/{quote(venue_slug, safe='')}",
            status_code=status.HTTP_302_FOUND,
        )
    result = browse.venue_sessions(db, program, venue_slug)
    if result is None:
        raise HTTPException(status_code=404, detail="Venue not found")
    return result

@router.get("/centers", response_model=List[schemas.CityCard])
def centers_page(db: Session = Depends(database.get_db)):
    return browse.list_centers(db)

@router.get("/contact", response_model=List[schemas.ContactGroup])
def contact_page(db: Session = Depends(database.get_db)):
    return browse.contacts_by_city(db)
