"""Create all missing tables using SQLAlchemy Base.metadata"""
import sys
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(Path(__file__).resolve().parent))

from dotenv import load_dotenv

load_dotenv(BASE_DIR / ".env", override=False)

from sqlalchemy import inspect

import medkiosk.models  # noqa: F401  # registers all models
from medkiosk.core.database import Base, get_engine

if __name__ == "__main__":
    engine = get_engine()
    print("Creating all tables from models...")
    Base.metadata.create_all(bind=engine)

    tables = inspect(engine).get_table_names()
    print(f"\n{len(tables)} tables present:")
    for table in sorted(tables):
        if table != 'alembic_version':
            print(f"  {table}")
