import os

from dotenv import load_dotenv

from db import SessionLocal, engine
from models import Admin, Base
from auth import hash_password

load_dotenv()

ADMIN_USERNAME = os.getenv("ADMIN_USERNAME", "admin")
ADMIN_PASSWORD = os.getenv("ADMIN_PASSWORD")


def create_admin(db, username: str, password: str, profile_name: str = "System Administrator"):
    """Create the admin account if it does not exist yet. Returns (admin, created)."""
    existing = db.query(Admin).filter(Admin.username == username).first()
    if existing:
        return existing, False

    admin = Admin(
        username=username,
        profile_name=profile_name,
        hashed_password=hash_password(password),
    )
    db.add(admin)
    db.commit()
    db.refresh(admin)
    return admin, True


if __name__ == "__main__":
    if not ADMIN_PASSWORD:
        raise SystemExit("Set ADMIN_PASSWORD before seeding the admin account")

    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        admin, created = create_admin(db, ADMIN_USERNAME, ADMIN_PASSWORD)
        if created:
            print("Admin created successfully!")
            print(f"Username: {admin.username}")
            print("Change password after first login!")
        else:
            print("Admin already exists")
            print(f"Username: {admin.username}")
    except Exception as e:
        db.rollback()
        print(f"Error: {e}")
        raise
    finally:
        db.close()
