import logging
import re
from datetime import date
from typing import Dict, List, Optional, Set
from urllib.parse import urlparse

from sqlalchemy import or_
from sqlalchemy.orm import Session, joinedload

from . import models, schemas
from .slugs import city_slug, normalize_slug, slugify

logger = logging.getLogger(__name__)

ALL_PROGRAMS_SLUG = "all-programs"
OTHER_CITY = "Other"

_HAS_SCHEME = re.compile(r"^https?://", re.IGNORECASE)

def to_safe_http_url(value: Optional[str]) -> Optional[str]:
    if not value or not value.strip():
        return None
    candidate = value.strip()
    if not _HAS_SCHEME.match(candidate):
        candidate = "https://" + candidate
    parsed = urlparse(candidate)
    if parsed.scheme.lower() not in ("http", "https") or not parsed.netloc:
        return None
    return candidate

def format_day(value: Optional[date]) -> str:
    if not value:
        return ""
    return f"{value:%b} {value.day}"

def format_clock(value) -> str:
    if not value:
        return ""
    hour = value.hour % 12 or 12
    suffix = "AM" if value.hour < 12 else "PM"
    return f"{hour}:{value.minute:02d} {suffix}"

def dates_label(session: models.ProgramSession) -> str:
    start = format_day(session.start_date)
    if session.end_date and session.end_date != session.start_date:
        return f"{start} – {format_day(session.end_date)}"
    return start

def time_label(session: models.ProgramSession) -> str:
    start = format_clock(session.start_time)
    end = format_clock(session.end_time)
    if start and end:
        return f"{start} – {end}"
    return start or end

def session_card(session: models.ProgramSession) -> schemas.SessionCard:
    program = session.program
    venue = session.venue
    contact = session.contact
    return schemas.SessionCard(
        id=session.id,
        start_date=session.start_date,
        end_date=session.end_date,
        start_time=session.start_time,
        end_time=session.end_time,
        dates_label=dates_label(session),
        time_label=time_label(session),
        language=session.language,
        registrations_allowed=bool(session.registrations_allowed),
        registration_url=to_safe_http_url(session.registration_link),
        open_without_registration=bool(session.open_without_registration),
        program=schemas.ProgramSummary(
            name=program.name,
            image_url=program.image_url,
            sub_text=program.sub_text,
            updated_at=program.updated_at,
        ) if program else None,
        venue=schemas.VenueSummary(
            name=venue.name,
            slug=venue.slug,
            google_maps_url=to_safe_http_url(venue.google_maps_url),
            city_name=venue.city_name,
        ) if venue else None,
        contact=schemas.ContactSummary(phone=contact.phone, whatsapp=contact.whatsapp) if contact else None,
    )

def find_program(db: Session, identifier: str):
    """
    Look a program up by slug, falling back to its numeric id.

    Returns `(program, canonical_slug)`; `canonical_slug` is set when the
    program was reached through an old id-based URL and should be redirected.
    """
    program = db.query(models.Program).filter(models.Program.slug == identifier).order_by(models.Program.id).first()
    if program is not None:
        return program, None

    if identifier.isdigit():
        program = db.query(models.Program).filter(models.Program.id == int(identifier)).first()
        if program is not None and program.slug and program.slug != identifier:
            logger.info("Program %s requested by id, canonical slug is %s", identifier, program.slug)
            return program, program.slug
    return program, None

def program_family_ids(db: Session, program: models.Program) -> List[int]:
    """The program and all of its descendants."""
    family: List[int] = [program.id]
    seen: Set[int] = {program.id}
    frontier = [program.id]
    while frontier:
        children = db.query(models.Program.id).filter(models.Program.parent_id.in_(frontier)).all()
        frontier = [row.id for row in children if row.id not in seen]
        seen.update(frontier)
        family.extend(frontier)
    return family

def _published_sessions(db: Session):
    return (
        db.query(models.ProgramSession)
        .options(
            joinedload(models.ProgramSession.program),
            joinedload(models.ProgramSession.venue).joinedload(models.Venue.city),
            joinedload(models.ProgramSession.contact),
        )
        .filter(models.ProgramSession.is_published.is_(True))
    )

def _upcoming(query, today: date, requested: Optional[date] = None):
    if requested is not None:
        return query.filter(or_(
            models.ProgramSession.start_date >= today,
            models.ProgramSession.start_date == requested,
        ))
    return query.filter(models.ProgramSession.start_date >= today)

def _session_in_city(session: models.ProgramSession, target: str) -> bool:
    venue = session.venue
    if venue is None:
        return False
    if venue.city is None:
        return slugify(OTHER_CITY) == target
    stored = normalize_slug(venue.city.slug) if venue.city.slug else None
    derived = normalize_slug(slugify(venue.city.name)) if venue.city.name else None
    return target in (stored, derived)

def _city_display_name(session: models.ProgramSession) -> str:
    city = session.venue.city if session.venue else None
    if city is None:
        return OTHER_CITY
    return city.name.strip() or OTHER_CITY

def program_city_cards(db: Session, program: models.Program, today: Optional[date] = None) -> List[schemas.CityCard]:
    today = today or date.today()
    venue_ids = {
        row.venue_id
        for row in _upcoming(
            db.query(models.ProgramSession.venue_id)
            .filter(models.ProgramSession.program_id.in_(program_family_ids(db, program)))
            .filter(models.ProgramSession.is_published.is_(True))
            .filter(models.ProgramSession.venue_id.isnot(None)),
            today,
        ).all()
    }
    if not venue_ids:
        return []

    venues = (
        db.query(models.Venue)
        .options(joinedload(models.Venue.city))
        .filter(models.Venue.id.in_(venue_ids))
        .order_by(models.Venue.name)
        .all()
    )

    cards: Dict[str, schemas.CityCard] = {}
    for venue in venues:
        city = venue.city
        city_name = (city.name.strip() if city and city.name else "") or OTHER_CITY
        key = f"city:{venue.city_id}" if venue.city_id else f"name:{city_name}"
        stored = (city.slug or "").strip() if city else ""
        card = schemas.CityCard(
            city_key=key,
            city_name=city_name,
            slug=stored or slugify(city_name),
            slug_source="db" if stored else "derived",
            image_url=city.image_url if city else None,
            updated_at=city.updated_at if city else None,
        )

        existing = cards.get(key)
        if existing is None:
            cards[key] = card
            continue
        if existing.slug_source == "derived" and card.slug_source == "db":
            existing = existing.model_copy(update={"slug": card.slug, "slug_source": "db"})
        if not existing.image_url and card.image_url:
            existing = existing.model_copy(update={
                "image_url": card.image_url,
                "updated_at": existing.updated_at or card.updated_at,
            })
        cards[key] = existing

    return sorted(cards.values(), key=lambda c: c.city_name)

def city_sessions(
    db: Session,
    program: Optional[models.Program],
    city: str,
    venue: Optional[str] = None,
    requested: Optional[date] = None,
    today: Optional[date] = None,
) -> schemas.CitySessions:
    """Published sessions in a city, for one program family or for every program when `program` is None."""
    today = today or date.today()
    query = _published_sessions(db)
    if program is not None:
        query = query.filter(models.ProgramSession.program_id.in_(program_family_ids(db, program)))
    query = _upcoming(query, today, requested)
    rows = query.order_by(models.ProgramSession.start_date, models.ProgramSession.id).all()

    target = normalize_slug(city)
    matched = [s for s in rows if _session_in_city(s, target)]
    if venue:
        wanted = normalize_slug(venue)
        matched = [s for s in matched if s.venue and normalize_slug(s.venue.slug or "") == wanted]

    city_name = _city_display_name(matched[0]) if matched else city
    if program is None:
        title = f"All programs in {city_name}"
    else:
        title = f"{program.name} in {city_name}"

    return schemas.CitySessions(
        title=title,
        program=schemas.Program.model_validate(program) if program else None,
        city_name=city_name,
        sessions=[session_card(s) for s in matched],
    )

def venue_sessions(db: Session, program: models.Program, venue_slug: str, today: Optional[date] = None):
    """Upcoming sessions of a program family at every venue sharing `venue_slug`; None when no such venue exists."""
    today = today or date.today()
    venues = (
        db.query(models.Venue)
        .options(joinedload(models.Venue.city))
        .filter(models.Venue.slug == normalize_slug(venue_slug))
        .order_by(models.Venue.id)
        .all()
    )
    if not venues and venue_slug.isdigit():
        venues = db.query(models.Venue).filter(models.Venue.id == int(venue_slug)).all()
    if not venues:
        return None

    rows = (
        _upcoming(_published_sessions(db), today)
        .filter(models.ProgramSession.program_id.in_(program_family_ids(db, program)))
        .filter(models.ProgramSession.venue_id.in_([v.id for v in venues]))
        .order_by(models.ProgramSession.start_date, models.ProgramSession.id)
        .all()
    )
    first = venues[0]
    return schemas.VenueSessions(
        title=f"{program.name} at {first.name}",
        program=schemas.Program.model_validate(program),
        venue=schemas.VenueSummary(
            name=first.name,
            slug=first.slug,
            google_maps_url=to_safe_http_url(first.google_maps_url),
            city_name=first.city_name,
        ),
        sessions=[session_card(s) for s in rows],
    )

def list_centers(db: Session) -> List[schemas.CityCard]:
    cards = []
    for city in db.query(models.City).order_by(models.City.name).all():
        stored = (city.slug or "").strip()
        cards.append(schemas.CityCard(
            city_key=f"city:{city.id}",
            city_name=(city.name or "").strip() or OTHER_CITY,
            slug=city_slug(city) or slugify(OTHER_CITY),
            slug_source="db" if stored else "derived",
            image_url=city.image_url,
            updated_at=city.updated_at,
        ))
    return cards

def contacts_by_city(db: Session) -> List[schemas.ContactGroup]:
    contacts = (
        db.query(models.Contact)
        .options(joinedload(models.Contact.city))
        .order_by(models.Contact.name)
        .all()
    )
    grouped: Dict[str, list] = {}
    for contact in contacts:
        city_name = (contact.city.name.strip() if contact.city and contact.city.name else "") or OTHER_CITY
        grouped.setdefault(city_name, []).append(contact)

    return [
        schemas.ContactGroup(city_name=name, contacts=[schemas.Contact.model_validate(c) for c in grouped[name]])
        for name in sorted(grouped)
    ]
