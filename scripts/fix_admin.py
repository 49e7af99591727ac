"""
Reset (or create) an admin account.

Usage:
    python scripts/fix_admin.py NEW_PASSWORD [USERNAME]
"""
import sys
import os

sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from sqlmodel import Session, select

from database import session as db_session
from database.models import User
from services.auth_service import AuthService
from utils.logger import get_logger

logger = get_logger("fix_admin")


def fix_admin(password: str, username: str = "admin"):
    db_session.create_db_and_tables()

    with Session(db_session.engine) as session:
        user = session.exec(select(User).where(User.username == username)).first()
        new_hash = AuthService.get_password_hash(password)

        if user:
            logger.info(f"Found existing user {username} (ID: {user.id}). Updating password...")
            user.password_hash = new_hash
            user.role = "admin"  # Ensure role is admin
        else:
            logger.info(f"User {username} not found. Creating new admin...")
            user = User(username=username, password_hash=new_hash, role="admin")
        session.add(user)
        session.commit()

    logger.info(f"Admin password reset for '{username}'")


if __name__ == "__main__":
    if len(sys.argv) < 2:
        print(__doc__)
        sys.exit(2)
    fix_admin(sys.argv[1], sys.argv[2] if len(sys.argv) > 2 else "admin")
