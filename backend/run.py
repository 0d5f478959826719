"""Run script with proper environment loading"""
import os
import sys
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent.parent
BACKEND_DIR = Path(__file__).resolve().parent
sys.path.insert(0, str(BACKEND_DIR))

from dotenv import load_dotenv

load_dotenv(BASE_DIR / ".env", override=False)

# Set working directory to backend
os.chdir(BACKEND_DIR)

if __name__ == "__main__":
    import uvicorn
    from medkiosk.core.config import get_settings

    settings = get_settings()

    from main import app

    uvicorn.run(
        app,
        host=settings.api_host,
        port=settings.api_port,
        reload=False,
    )
