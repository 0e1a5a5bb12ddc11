"""
Shared program links.

A share token looks like ``<program-slug>-<city-slug>-<venue-slug>-YYYY-MM-DD``.
Slugs contain hyphens of their own, so the token cannot be split by position;
the candidate splits are checked against the program and venue slugs that
actually exist and the longest match wins.
"""
import logging
import re
from dataclasses import dataclass
from datetime import date
from typing import Callable, Iterable, List, Optional, Set, Tuple
from urllib.parse import quote

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from . import models

logger = logging.getLogger(__name__)

DEFAULT_LISTING_PATH = "/programs"
MIN_TOKEN_LENGTH = 12
DATE_LENGTH = 10

_ISO_DATE = re.compile(r"^[0-9]{4}-[0-9]{2}-[0-9]{2}$")

SlugLookup = Callable[[List[str]], Iterable[str]]

def is_iso_date(value: str) -> bool:
    if not _ISO_DATE.match(value):
        return False
    year, month, day = (int(part) for part in value.split("-"))
    try:
        date(year, month, day)
    except ValueError:
        return False
    return True

@dataclass(frozen=True)
class ShareToken:
    rest: str
    date: str
    separators: Tuple[int, ...]

    def program_candidates(self) -> List[str]:
        return _unique(self.rest[:i] for i in self.separators)

    def venue_candidates(self) -> List[str]:
        return _unique(self.rest[i + 1:] for i in self.separators)

@dataclass(frozen=True)
class ShareTarget:
    program_slug: str
    city_slug: str
    venue_slug: str
    date: str

    @property
    def score(self) -> int:
        return len(self.program_slug) + len(self.venue_slug)

    def url(self) -> str:
        return "/programs/{}/centers/{}?venue={}&date={}".format(
            quote(self.program_slug, safe=""),
            quote(self.city_slug, safe=""),
            quote(self.venue_slug, safe=""),
            quote(self.date, safe=""),
        )

def _unique(values: Iterable[str]) -> List[str]:
    seen = []
    for value in values:
        if value and value not in seen:
            seen.append(value)
    return seen

def parse_share_token(raw: str) -> Optional[ShareToken]:
    # path parameters arrive already percent-decoded
    token = (raw or "").strip()
    if len(token) < MIN_TOKEN_LENGTH:
        return None

    date_part = token[-DATE_LENGTH:]
    if token[-DATE_LENGTH - 1] != "-" or not is_iso_date(date_part):
        return None

    rest = token[:-DATE_LENGTH - 1]
    separators = tuple(i for i, char in enumerate(rest) if char == "-")
    # program, city and venue need at least two separators between them
    if len(separators) < 2:
        return None

    return ShareToken(rest=rest, date=date_part, separators=separators)

def choose_target(token: ShareToken, program_slugs: Set[str], venue_slugs: Set[str]) -> Optional[ShareTarget]:
    """Best split of `token` whose program and venue slugs both exist."""
    best: Optional[ShareTarget] = None
    rest, separators = token.rest, token.separators

    for a, i in enumerate(separators[:-1]):
        program_slug = rest[:i]
        if program_slug not in program_slugs:
            continue
        for j in separators[a + 1:]:
            city_slug = rest[i + 1:j]
            venue_slug = rest[j + 1:]
            if not city_slug or not venue_slug or venue_slug not in venue_slugs:
                continue
            candidate = ShareTarget(program_slug, city_slug, venue_slug, token.date)
            if best is None or candidate.score > best.score:
                best = candidate

    return best

class ShareTokenResolver:
    """Turns share tokens into listing URLs using injected slug lookups."""

    def __init__(self, existing_program_slugs: SlugLookup, existing_venue_slugs: SlugLookup):
        self.existing_program_slugs = existing_program_slugs
        self.existing_venue_slugs = existing_venue_slugs

    @classmethod
    def for_session(cls, db: Session) -> "ShareTokenResolver":
        def program_slugs(candidates):
            rows = db.query(models.Program.slug).filter(models.Program.slug.in_(candidates)).all()
            return [row.slug for row in rows]

        def venue_slugs(candidates):
            rows = db.query(models.Venue.slug).filter(models.Venue.slug.in_(candidates)).all()
            return [row.slug for row in rows]

        return cls(program_slugs, venue_slugs)

    def resolve(self, raw: str) -> Optional[ShareTarget]:
        token = parse_share_token(raw)
        if token is None:
            logger.info("Share token %r is malformed", raw)
            return None

        try:
            programs = {str(slug) for slug in self.existing_program_slugs(token.program_candidates())}
            venues = {str(slug) for slug in self.existing_venue_slugs(token.venue_candidates())}
        except SQLAlchemyError as e:
            logger.warning("Slug lookup failed for share token %r: %s", raw, e)
            return None

        target = choose_target(token, programs, venues)
        if target is None:
            logger.info("No program/venue match for share token %r", raw)
        return target

    def redirect_url(self, raw: str) -> str:
        target = self.resolve(raw)
        return target.url() if target else DEFAULT_LISTING_PATH
