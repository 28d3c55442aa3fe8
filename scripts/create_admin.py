"""
scripts/create_admin.py

Bootstrap accounts from the project root. Accounts are never self-registered:
administrators and field agents are created here.

    python -m scripts.create_admin            # administrator
    python -m scripts.create_admin --agent    # field agent

You will be prompted for name, email, optional phone, and password.
"""

import argparse
import sys
import os

# Make sure app is importable
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from sqlalchemy.orm import Session
from app.core.database import SessionLocal, init_db
from app.core.logging import configure_logging, get_logger
from app.models.user import ADMIN_CAPABILITIES, AGENT_CAPABILITIES, User
from app.utils.auth import get_password_hash

logger = get_logger("scripts.create_admin")

MIN_PASSWORD_LENGTH = 8


class AccountError(ValueError):
    pass


def create_user(db: Session, full_name: str, email: str, password: str,
                phone_number: str = None, agent: bool = False) -> User:
    if not all([full_name, email, password]):
        raise AccountError("Name, email and password are required.")
    if len(password) < MIN_PASSWORD_LENGTH:
        raise AccountError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters.")

    email = email.strip().lower()
    if db.query(User).filter(User.email == email).first():
        raise AccountError(f"Email '{email}' is already registered.")
    if phone_number and db.query(User).filter(User.phone_number == phone_number).first():
        raise AccountError(f"Phone '{phone_number}' is already registered.")

    user = User(
        full_name=full_name,
        email=email,
        phone_number=phone_number or None,
        password_hash=get_password_hash(password),
        capabilities=list(AGENT_CAPABILITIES if agent else ADMIN_CAPABILITIES),
        is_active=True,
    )
    try:
        db.add(user)
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(user)
    logger.info("Created %s account %s", "agent" if agent else "admin", user.email)
    return user


def main(argv=None):
    parser = argparse.ArgumentParser(description="Create an administrator or field agent account.")
    parser.add_argument("--agent", action="store_true", help="create a field agent instead of an admin")
    args = parser.parse_args(argv)

    configure_logging()
    role = "Agent" if args.agent else "Admin"
    print(f"\n── Create {role} User ─────────────────────")

    full_name    = input("Full name:      ").strip()
    email        = input("Email:          ").strip()
    phone_number = input("Phone (optional): ").strip()
    password     = input("Password:       ").strip()

    init_db()
    db = SessionLocal()
    try:
        user = create_user(db, full_name, email, password, phone_number, agent=args.agent)
    except AccountError as e:
        print(f"❌ {e}")
        sys.exit(1)
    finally:
        db.close()

    print(f"\n✅ {role} user created successfully!")
    print(f"   ID:    {user.id}")
    print(f"   Name:  {user.full_name}")
    print(f"   Email: {user.email}")
    print(f"   Caps:  {', '.join(user.capabilities)}")


if __name__ == "__main__":
    main()
