"""
Run FastAPI HTTP Server

Starts the booking API (and, with it, the reminder sweep).
"""

import os
import uvicorn
from mockbook.config import get_config

if __name__ == "__main__":
    config = get_config()

    # Hosting platforms provide PORT; otherwise fall back to config
    port = int(os.environ.get("PORT", config.server.port))
    host = os.environ.get("HOST", config.server.host)

    uvicorn.run(
        "mockbook.api.main:app",
        host=host,
        port=port,
        reload=False,
        log_level="info",
    )
