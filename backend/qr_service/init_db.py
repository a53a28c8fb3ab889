"""Database initialization script with an optional admin account."""

import os

from sqlalchemy.orm import Session

from qr_service.database import Base, SessionLocal, engine
from qr_service.models import User, UserRole
from qr_service.services.auth_service import AuthService


def create_tables():
    """Create all database tables."""
    print("Creating database tables...")
    Base.metadata.create_all(bind=engine)
    print("Tables created successfully!")


def seed_admin(db: Session, email: str, password: str) -> None:
    """Create a verified admin account unless one already uses that email."""
    email = email.strip().lower()
    if db.query(User).filter(User.email == email).first():
        print(f"User {email} already exists. Skipping admin seed.")
        return

    db.add(
        User(
            email=email,
            password_hash=AuthService.hash_password(password),
            role=UserRole.ADMIN,
            is_verified=True,
        )
    )
    db.commit()
    print(f"Created admin user {email}")


def init_db():
    """Initialize database tables; seed an admin from ADMIN_EMAIL/ADMIN_PASSWORD if set."""
    print("Initializing database...")
    create_tables()

    admin_email = os.environ.get("ADMIN_EMAIL")
    admin_password = os.environ.get("ADMIN_PASSWORD")
    if not (admin_email and admin_password):
        return

    db = SessionLocal()
    try:
        seed_admin(db, admin_email, admin_password)
        print("\nDatabase initialization complete!")
    except Exception as e:
        print(f"\nError during database initialization: {e}")
        db.rollback()
        raise
    finally:
        db.close()


if __name__ == "__main__":
    init_db()
