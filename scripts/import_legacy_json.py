"""
Import a legacy db.json document into the database.

Usage:
    python scripts/import_legacy_json.py path/to/db.json [DATABASE_URL]
"""
import sys
import os

# Add parent directory to path to allow importing modules
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from sqlmodel import Session

from database import session as db_session
from services.backup_service import LegacyImportError, import_legacy_document, load_legacy_file
from utils.logger import get_logger

logger = get_logger("import_legacy_json")


def migrate(path: str, database_url: str = None) -> int:
    if database_url:
        db_session.configure_engine(database_url)
    db_session.create_db_and_tables()

    try:
        doc = load_legacy_file(path)
    except LegacyImportError as e:
        logger.error(f"Nothing imported: {e}")
        return 1

    with Session(db_session.engine) as session:
        results = import_legacy_document(session, doc)

    for error in results["errors"]:
        logger.warning(f"Skipped record {error}")
    return 0


if __name__ == "__main__":
    if len(sys.argv) < 2:
        print(__doc__)
        sys.exit(2)
    sys.exit(migrate(sys.argv[1], sys.argv[2] if len(sys.argv) > 2 else None))
