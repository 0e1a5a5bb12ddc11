import logging
import math

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, joinedload
from . import models, schemas, auth
from .slugs import slugify

logger = logging.getLogger(__name__)

PAGE_SIZE = 20

ADMIN_TABLES = {
    "cities": models.City,
    "venues": models.Venue,
    "contacts": models.Contact,
    "programs": models.Program,
    "sessions": models.ProgramSession,
}

class CrudError(ValueError):
    """An admin write was rejected; the message is meant for the admin user."""

def _commit(db: Session, unique_violation_message: str = None):
    try:
        db.commit()
    except IntegrityError as e:
        db.rollback()
        logger.warning("Integrity error on commit: %s", e.orig)
        if unique_violation_message and "unique" in str(e.orig).lower():
            raise CrudError(unique_violation_message) from e
        raise CrudError(str(e.orig)) from e

def paginate(query, page: int, page_size: int = PAGE_SIZE):
    total = query.count()
    total_pages = max(1, math.ceil(total / page_size))
    page = min(max(1, page), total_pages)
    items = query.offset((page - 1) * page_size).limit(page_size).all()
    return {"items": items, "total": total, "page": page, "total_pages": total_pages}

# --- Users ---

def get_user(db: Session, username: str):
    return db.query(models.User).filter(models.User.username == username).first()

def create_user(db: Session, user: schemas.UserCreate):
    hashed_password = auth.get_password_hash(user.password)
    db_user = models.User(username=user.username, hashed_password=hashed_password)
    db.add(db_user)
    db.commit()
    db.refresh(db_user)
    return db_user

# --- Cities ---

def get_cities_page(db: Session, page: int = 1):
    return paginate(db.query(models.City).order_by(models.City.name), page)

def get_city(db: Session, city_id: int):
    return db.query(models.City).filter(models.City.id == city_id).first()

def _apply_city(db_city: models.City, city: schemas.CityCreate):
    name = city.name.strip()
    if not name:
        raise CrudError("Please enter a city name.")
    db_city.name = name
    db_city.slug = slugify(city.slug) if city.slug else None
    db_city.image_url = city.image_url

def create_city(db: Session, city: schemas.CityCreate):
    db_city = models.City()
    _apply_city(db_city, city)
    db.add(db_city)
    _commit(db)
    db.refresh(db_city)
    return db_city

def update_city(db: Session, city_id: int, city: schemas.CityCreate):
    db_city = get_city(db, city_id)
    if db_city:
        _apply_city(db_city, city)
        _commit(db)
        db.refresh(db_city)
    return db_city

# --- Venues ---

def get_venues_page(db: Session, page: int = 1):
    query = db.query(models.Venue).options(joinedload(models.Venue.city)).order_by(models.Venue.name)
    return paginate(query, page)

def get_venue(db: Session, venue_id: int):
    return db.query(models.Venue).filter(models.Venue.id == venue_id).first()

def _apply_venue(db_venue: models.Venue, venue: schemas.VenueCreate):
    name = venue.name.strip()
    if not name or not venue.city_id:
        raise CrudError("Please enter a venue name and select a city.")
    db_venue.name = name
    db_venue.slug = slugify(name)
    db_venue.city_id = venue.city_id
    db_venue.address = venue.address
    db_venue.google_maps_url = venue.google_maps_url

def create_venue(db: Session, venue: schemas.VenueCreate):
    db_venue = models.Venue()
    _apply_venue(db_venue, venue)
    db.add(db_venue)
    _commit(db)
    db.refresh(db_venue)
    return db_venue

def update_venue(db: Session, venue_id: int, venue: schemas.VenueCreate):
    db_venue = get_venue(db, venue_id)
    if db_venue:
        _apply_venue(db_venue, venue)
        _commit(db)
        db.refresh(db_venue)
    return db_venue

# --- Contacts ---

def get_contacts_page(db: Session, page: int = 1):
    return paginate(db.query(models.Contact).order_by(models.Contact.name), page)

def get_contact(db: Session, contact_id: int):
    return db.query(models.Contact).filter(models.Contact.id == contact_id).first()

def _apply_contact(db_contact: models.Contact, contact: schemas.ContactCreate):
    name = contact.name.strip()
    if not name or not contact.email or not contact.phone or not contact.city_id:
        raise CrudError("Please complete the required contact fields.")
    db_contact.name = name
    db_contact.email = contact.email.strip()
    db_contact.phone = contact.phone.strip()
    db_contact.whatsapp = contact.whatsapp
    db_contact.city_id = contact.city_id

def create_contact(db: Session, contact: schemas.ContactCreate):
    db_contact = models.Contact()
    _apply_contact(db_contact, contact)
    db.add(db_contact)
    _commit(db, unique_violation_message="Contact already exists")
    db.refresh(db_contact)
    return db_contact

def update_contact(db: Session, contact_id: int, contact: schemas.ContactCreate):
    db_contact = get_contact(db, contact_id)
    if db_contact:
        _apply_contact(db_contact, contact)
        _commit(db)
        db.refresh(db_contact)
    return db_contact

# --- Programs ---

def build_program_rows(programs):
    """Roots sorted by name, each followed by its children sorted by name."""
    by_id = {p.id: p for p in programs}
    roots = []
    children = {}
    for program in programs:
        if program.parent_id and program.parent_id in by_id:
            children.setdefault(program.parent_id, []).append(program)
        else:
            roots.append(program)

    rows = []
    for root in sorted(roots, key=lambda p: p.name):
        rows.append((root, False))
        for child in sorted(children.get(root.id, []), key=lambda p: p.name):
            rows.append((child, True))
    return rows

def get_programs_page(db: Session, page: int = 1):
    programs = db.query(models.Program).order_by(models.Program.name).all()
    rows = build_program_rows(programs)
    total = len(rows)
    total_pages = max(1, math.ceil(total / PAGE_SIZE))
    page = min(max(1, page), total_pages)
    start = (page - 1) * PAGE_SIZE
    items = [
        schemas.ProgramRow.model_validate(program).model_copy(update={"indent": indent})
        for program, indent in rows[start:start + PAGE_SIZE]
    ]
    return {"items": items, "total": total, "page": page, "total_pages": total_pages}

def get_program(db: Session, program_id: int):
    return db.query(models.Program).filter(models.Program.id == program_id).first()

def _apply_program(db: Session, db_program: models.Program, program: schemas.ProgramCreate):
    name = program.name.strip()
    if not name:
        raise CrudError("Please enter a program name.")
    if program.parent_id is not None:
        if db_program.id is not None and program.parent_id == db_program.id:
            raise CrudError("A program cannot be its own parent.")
        if get_program(db, program.parent_id) is None:
            raise CrudError("Parent program does not exist.")
    db_program.name = name
    db_program.slug = slugify(name)
    db_program.parent_id = program.parent_id
    db_program.image_url = program.image_url
    db_program.sub_text = program.sub_text
    db_program.details_external = program.details_external
    db_program.external_link = program.external_link

def create_program(db: Session, program: schemas.ProgramCreate):
    db_program = models.Program()
    _apply_program(db, db_program, program)
    db.add(db_program)
    _commit(db, unique_violation_message="A program with this name already exists")
    db.refresh(db_program)
    return db_program

def update_program(db: Session, program_id: int, program: schemas.ProgramCreate):
    db_program = get_program(db, program_id)
    if db_program:
        _apply_program(db, db_program, program)
        _commit(db, unique_violation_message="A program with this name already exists")
        db.refresh(db_program)
    return db_program

# --- Sessions ---

def get_sessions_page(db: Session, page: int = 1):
    query = (
        db.query(models.ProgramSession)
        .options(
            joinedload(models.ProgramSession.program),
            joinedload(models.ProgramSession.venue).joinedload(models.Venue.city),
            joinedload(models.ProgramSession.contact),
        )
        .order_by(models.ProgramSession.start_date, models.ProgramSession.id)
    )
    return paginate(query, page)

def get_session(db: Session, session_id: int):
    return db.query(models.ProgramSession).filter(models.ProgramSession.id == session_id).first()

def _apply_session(db_session: models.ProgramSession, session: schemas.SessionCreate):
    if not session.program_id or not session.venue_id or not session.contact_id:
        raise CrudError("Please select a program, venue, and contact.")
    if not session.start_date:
        raise CrudError("Please choose a start date.")
    for field, value in session.model_dump().items():
        setattr(db_session, field, value)

def create_session(db: Session, session: schemas.SessionCreate):
    db_session = models.ProgramSession()
    _apply_session(db_session, session)
    db.add(db_session)
    _commit(db)
    db.refresh(db_session)
    return db_session

def update_session(db: Session, session_id: int, session: schemas.SessionCreate):
    db_session = get_session(db, session_id)
    if db_session:
        _apply_session(db_session, session)
        _commit(db)
        db.refresh(db_session)
    return db_session

# --- Shared ---

def delete_row(db: Session, table: str, row_id: int) -> bool:
    model = ADMIN_TABLES[table]
    try:
        deleted = db.query(model).filter(model.id == row_id).delete(synchronize_session=False)
        db.commit()
    except IntegrityError as e:
        db.rollback()
        logger.warning("Refused to delete %s id=%s: %s", table, row_id, e.orig)
        raise CrudError("This row is still referenced by other records.") from e
    logger.info("Deleted %d row(s) from %s with id=%s", deleted, table, row_id)
    return deleted > 0

def get_lookups(db: Session):
    return {
        "programs": db.query(models.Program).order_by(models.Program.name).all(),
        "venues": db.query(models.Venue).options(joinedload(models.Venue.city)).order_by(models.Venue.name).all(),
        "contacts": db.query(models.Contact).order_by(models.Contact.name).all(),
        "cities": db.query(models.City).order_by(models.City.name).all(),
    }

def seed_database(db: Session, data: dict):
    """Insert the cities, venues, contacts, programs and sessions of a seed document."""
    ids = {table: {} for table in ADMIN_TABLES}
    session_count = 0
    try:
        for item in data.get("cities", []):
            ids["cities"][item["key"]] = create_city(db, schemas.CityCreate(**_fields(item))).id
        for item in data.get("venues", []):
            fields = _fields(item, city_id=ids["cities"].get(item.get("city")))
            ids["venues"][item["key"]] = create_venue(db, schemas.VenueCreate(**fields)).id
        for item in data.get("contacts", []):
            fields = _fields(item, city_id=ids["cities"].get(item.get("city")))
            ids["contacts"][item["key"]] = create_contact(db, schemas.ContactCreate(**fields)).id
        for item in data.get("programs", []):
            fields = _fields(item, parent_id=ids["programs"].get(item.get("parent")))
            ids["programs"][item["key"]] = create_program(db, schemas.ProgramCreate(**fields)).id
        for item in data.get("sessions", []):
            fields = _fields(
                item,
                program_id=ids["programs"].get(item.get("program")),
                venue_id=ids["venues"].get(item.get("venue")),
                contact_id=ids["contacts"].get(item.get("contact")),
            )
            create_session(db, schemas.SessionCreate(**fields))
            session_count += 1
    except (CrudError, SQLAlchemyError):
        db.rollback()
        raise
    counts = {table: len(keys) for table, keys in ids.items()}
    counts["sessions"] = session_count
    return counts

def _fields(item: dict, **links):
    fields = {k: v for k, v in item.items() if k not in ("key", "city", "parent", "program", "venue", "contact")}
    fields.update(links)
    return fields
