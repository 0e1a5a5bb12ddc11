import json
import logging
import os
from dotenv import load_dotenv
from fastapi import FastAPI
from . import models, database, crud, schemas
from .routers import admin, auth, pages, public, share

load_dotenv()

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="Program Schedule Site API")

app.include_router(auth.router)
app.include_router(public.router)
app.include_router(pages.router)
app.include_router(share.router)
app.include_router(admin.router)

def seed_from_file(db, file_path: str):
    """Load a seed document into an empty database; returns the row counts inserted, or None."""
    if db.query(models.Program).count() > 0:
        return None
    if not os.path.exists(file_path):
        logger.warning("Seed file %s not found. CWD: %s", file_path, os.getcwd())
        return None

    with open(file_path, "r", encoding="utf-8") as f:
        data = json.load(f)

    counts = crud.seed_database(db, data)
    logger.info("Database seeded from %s: %s", file_path, counts)
    return counts

def ensure_admin_user(db):
    admin_username = os.getenv("ADMIN_USERNAME", "admin")
    admin_password = os.getenv("ADMIN_PASSWORD", "password123")

    if not crud.get_user(db, admin_username):
        crud.create_user(db, schemas.UserCreate(username=admin_username, password=admin_password))
        logger.info("Created default admin user: %s", admin_username)

@app.on_event("startup")
def startup_event():
    models.Base.metadata.create_all(bind=database.engine)
    db = database.SessionLocal()
    try:
        ensure_admin_user(db)
        seed_file = os.getenv("SEED_FILE")
        if seed_file:
            seed_from_file(db, seed_file)
    finally:
        db.close()

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="127.0.0.1", port=8000)
