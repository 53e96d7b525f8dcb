"""
Run script for the TeamTrack API.
"""

import uvicorn

from teamtrack.infrastructure.config import get_settings

if __name__ == "__main__":
    settings = get_settings()
    uvicorn.run(
        "teamtrack.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.dev_mode,
        log_level=settings.log_level.lower()
    )
