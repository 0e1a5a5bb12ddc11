import logging
import sys
from dotenv import load_dotenv
from program_site import auth, crud, database, models, schemas

load_dotenv()

logger = logging.getLogger("change_admin")

def change_admin_password(db, new_username, new_password):
    """Set the password of `new_username`, creating the account when it does not exist yet."""
    user = crud.get_user(db, new_username)

    if user:
        logger.info("Updating password for user: %s", new_username)
        user.hashed_password = auth.get_password_hash(new_password)
        db.commit()
        return "updated"

    logger.info("User %s not found. Creating new admin user.", new_username)
    crud.create_user(db, schemas.UserCreate(username=new_username, password=new_password))
    return "created"

def main(argv):
    if len(argv) != 3:
        print("Usage: python change_admin.py <username> <password>")
        return 2

    models.Base.metadata.create_all(bind=database.engine)
    db = database.SessionLocal()
    try:
        result = change_admin_password(db, argv[1], argv[2])
        print(f"Admin user {argv[1]} {result}.")
        return 0
    except Exception as e:
        db.rollback()
        logger.error("Could not change admin password: %s", e)
        return 1
    finally:
        db.close()

if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    sys.exit(main(sys.argv))
