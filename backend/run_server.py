# run_server.py
import uvicorn

from protrack.core.config import settings
from protrack.main import app

if __name__ == "__main__":
    # Loguru owns the application logs; uvicorn only reports its own lifecycle.
    uvicorn.run(
        app,
        host=settings.API_HOST,
        port=settings.API_PORT,
        log_level="warning",
        access_log=False,
    )
