from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session
from .. import auth, crud, database, models, schemas

router = APIRouter(
    prefix="/admin",
    tags=["admin"],
    dependencies=[Depends(auth.get_current_user)]
)

def _write(action, *args, **kwargs):
    try:
        result = action(*args, **kwargs)
    except crud.CrudError as e:
        raise HTTPException(status_code=400, detail=str(e))
    if result is None:
        raise HTTPException(status_code=404, detail="Not found")
    return result

def _delete(db: Session, table: str, row_id: int):
    try:
        deleted = crud.delete_row(db, table, row_id)
    except crud.CrudError as e:
        raise HTTPException(status_code=400, detail=str(e))
    if not deleted:
        raise HTTPException(status_code=404, detail="Not found")
    return {"ok": True}

@router.get("")
def overview(user: models.User = Depends(auth.get_current_user), db: Session = Depends(database.get_db)):
    counts = {table: db.query(model).count() for table, model in crud.ADMIN_TABLES.items()}
    return {"user": user.username, "counts": counts}

@router.get("/lookups", response_model=schemas.Lookups)
def read_lookups(db: Session = Depends(database.get_db)):
    return crud.get_lookups(db)

@router.post("/delete")
def delete_any(body: schemas.DeleteRequest, db: Session = Depends(database.get_db)):
    if not body.table or body.table not in crud.ADMIN_TABLES:
        return JSONResponse({"error": "Invalid table"}, status_code=400)
    if not body.id:
        return JSONResponse({"error": "Missing id"}, status_code=400)
    try:
        deleted = crud.delete_row(db, body.table, body.id)
    except crud.CrudError as e:
        return JSONResponse({"error": str(e)}, status_code=400)
    if not deleted:
        return JSONResponse(
            {"error": "Nothing was deleted. The row may not exist, or it is still referenced by other records."},
            status_code=404,
        )
    return {"ok": True}

# --- Cities ---

@router.get("/cities", response_model=schemas.CityPage)
def read_cities(page: int = 1, db: Session = Depends(database.get_db)):
    return crud.get_cities_page(db, page=page)

@router.post("/cities", response_model=schemas.City)
def create_city(city: schemas.CityCreate, db: Session = Depends(database.get_db)):
    return _write(crud.create_city, db, city)

@router.put("/cities/{city_id}", response_model=schemas.City)
def update_city(city_id: int, city: schemas.CityCreate, db: Session = Depends(database.get_db)):
    return _write(crud.update_city, db, city_id, city)

@router.delete("/cities/{city_id}")
def delete_city(city_id: int, db: Session = Depends(database.get_db)):
    return _delete(db, "cities", city_id)

# --- Venues ---

@router.get("/venues", response_model=schemas.VenuePage)
def read_venues(page: int = 1, db: Session = Depends(database.get_db)):
    return crud.get_venues_page(db, page=page)

@router.post("/venues", response_model=schemas.Venue)
def create_venue(venue: schemas.VenueCreate, db: Session = Depends(database.get_db)):
    return _write(crud.create_venue, db, venue)

@router.put("/venues/{venue_id}", response_model=schemas.Venue)
def update_venue(venue_id: int, venue: schemas.VenueCreate, db: Session = Depends(database.get_db)):
    return _write(crud.update_venue, db, venue_id, venue)

@router.delete("/venues/{venue_id}")
def delete_venue(venue_id: int, db: Session = Depends(database.get_db)):
    return _delete(db, "venues", venue_id)

# --- Contacts ---

@router.get("/contacts", response_model=schemas.ContactPage)
def read_contacts(page: int = 1, db: Session = Depends(database.get_db)):
    return crud.get_contacts_page(db, page=page)

@router.post("/contacts", response_model=schemas.Contact)
def create_contact(contact: schemas.ContactCreate, db: Session = Depends(database.get_db)):
    return _write(crud.create_contact, db, contact)

@router.put("/contacts/{contact_id}", response_model=schemas.Contact)
def update_contact(contact_id: int, contact: schemas.ContactCreate, db: Session = Depends(database.get_db)):
    return _write(crud.update_contact, db, contact_id, contact)

@router.delete("/contacts/{contact_id}")
def delete_contact(contact_id: int, db: Session = Depends(database.get_db)):
    return _delete(db, "contacts", contact_id)

# --- Programs ---

@router.get("/programs", response_model=schemas.ProgramPage)
def read_programs(page: int = 1, db: Session = Depends(database.get_db)):
    return crud.get_programs_page(db, page=page)

@router.post("/programs", response_model=schemas.Program)
def create_program(program: schemas.ProgramCreate, db: Session = Depends(database.get_db)):
    return _write(crud.create_program, db, program)

@router.put("/programs/{program_id}", response_model=schemas.Program)
def update_program(program_id: int, program: schemas.ProgramCreate, db: Session = Depends(database.get_db)):
    return _write(crud.update_program, db, program_id, program)

@router.delete("/programs/{program_id}")
def delete_program(program_id: int, db: Session = Depends(database.get_db)):
    return _delete(db, "programs", program_id)

# --- Sessions ---

@router.get("/sessions", response_model=schemas.SessionPage)
def read_sessions(page: int = 1, db: Session = Depends(database.get_db)):
    return crud.get_sessions_page(db, page=page)

@router.post("/sessions", response_model=schemas.Session)
def create_session(session: schemas.SessionCreate, db: Session = Depends(database.get_db)):
    return _write(crud.create_session, db, session)

@router.put("/sessions/{session_id}", response_model=schemas.Session)
def update_session(session_id: int, session: schemas.SessionCreate, db: Session = Depends(database.get_db)):
    return _write(crud.update_session, db, session_id, session)

@router.delete("/sessions/{session_id}")
def delete_session(session_id: int, db: Session = Depends(database.get_db)):
    return _delete(db, "sessions", session_id)
