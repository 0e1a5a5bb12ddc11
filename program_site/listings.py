import logging
from datetime import date
from typing import Dict, Iterable, List, Optional, Tuple

from sqlalchemy import or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from . import models

logger = logging.getLogger(__name__)

class ListingError(Exception):
    """A query behind the public program listing failed."""

def _date_sort_key(start_date: Optional[date]) -> Tuple[int, date]:
    # Missing dates sort after every real date
    if start_date is None:
        return (1, date.max)
    return (0, start_date)

def _earlier(a: Optional[date], b: Optional[date]) -> Optional[date]:
    if a is None:
        return b
    if b is None:
        return a
    return min(a, b)

def earliest_start_by_program(rows: Iterable[Tuple[int, Optional[date]]]) -> Dict[int, Optional[date]]:
    """
    Map each program id to its earliest session start date.

    Rows are `(program_id, start_date)` pairs. After a stable sort by date the
    first row seen for a program carries its earliest date, or None when the
    program only has undated rows.
    """
    earliest: Dict[int, Optional[date]] = {}
    for program_id, start_date in sorted(rows, key=lambda row: _date_sort_key(row[1])):
        if program_id not in earliest:
            earliest[program_id] = start_date
    return earliest

def load_ancestors(db: Session, programs: List[models.Program]) -> Dict[int, models.Program]:
    """Load every ancestor of `programs`, following parent links until none are left."""
    known: Dict[int, models.Program] = {p.id: p for p in programs}
    pending = {p.parent_id for p in programs if p.parent_id is not None} - set(known)

    while pending:
        parents = db.query(models.Program).filter(models.Program.id.in_(pending)).all()
        for parent in parents:
            known[parent.id] = parent
        pending = {p.parent_id for p in parents if p.parent_id is not None} - set(known)

    return known

def display_program(program: models.Program, known: Dict[int, models.Program]) -> models.Program:
    """Walk up to the top-level program; stops at a missing parent or a cycle."""
    seen = {program.id}
    current = program
    while current.parent_id is not None:
        parent = known.get(current.parent_id)
        if parent is None or parent.id in seen:
            break
        seen.add(parent.id)
        current = parent
    return current

def order_programs(
    session_programs: List[models.Program],
    known: Dict[int, models.Program],
    earliest: Dict[int, Optional[date]],
    external_programs: List[models.Program],
) -> List[models.Program]:
    rolled_up: Dict[int, models.Program] = {}
    rolled_up_start: Dict[int, Optional[date]] = {}

    for program in session_programs:
        shown = display_program(program, known)
        start = earliest.get(program.id)
        if shown.id in rolled_up:
            rolled_up_start[shown.id] = _earlier(rolled_up_start[shown.id], start)
        else:
            rolled_up[shown.id] = shown
            rolled_up_start[shown.id] = start

    dated = [p for p in rolled_up.values() if rolled_up_start[p.id] is not None]
    undated = [p for p in rolled_up.values() if rolled_up_start[p.id] is None]

    dated.sort(key=lambda p: (rolled_up_start[p.id], p.name))
    undated.sort(key=lambda p: p.name)
    external = sorted(external_programs, key=lambda p: p.name)

    ordered: List[models.Program] = []
    emitted = set()
    for program in dated + undated + external:
        if program.id in emitted:
            continue
        emitted.add(program.id)
        ordered.append(program)
    return ordered

def get_public_programs(db: Session, offset: int, limit: int, today: Optional[date] = None):
    """
    Programs shown on the public listing, one page at a time.

    Programs with published sessions starting today or later are rolled up to
    their top-level program and ordered by earliest upcoming session, then by
    name. Programs without a dated session follow, and programs whose details
    live on an external site come last. Returns `(programs, has_more)`.
    """
    today = today or date.today()

    try:
        external_programs = (
            db.query(models.Program)
            .filter(models.Program.details_external.is_(True))
            .all()
        )

        session_rows = (
            db.query(models.ProgramSession.program_id, models.ProgramSession.start_date)
            .filter(models.ProgramSession.is_published.is_(True))
            .filter(or_(
                models.ProgramSession.start_date >= today,
                models.ProgramSession.start_date.is_(None),
            ))
            .filter(models.ProgramSession.program_id.isnot(None))
            .all()
        )
        earliest = earliest_start_by_program(session_rows)

        session_programs: List[models.Program] = []
        if earliest:
            session_programs = (
                db.query(models.Program)
                .filter(models.Program.id.in_(list(earliest)))
                .all()
            )
        known = load_ancestors(db, session_programs)
    except SQLAlchemyError as e:
        logger.error("Public program listing query failed: %s", e)
        raise ListingError(str(e)) from e

    ordered = order_programs(session_programs, known, earliest, external_programs)
    page = ordered[offset:offset + limit]
    has_more = offset + limit < len(ordered)

    logger.debug(
        "Public programs offset=%d limit=%d total=%d has_more=%s",
        offset, limit, len(ordered), has_more,
    )
    return page, has_more
