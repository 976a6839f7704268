"""
Run script for NeuraSlide API.
"""

import os
import uvicorn

from neuraslide.infrastructure.config import get_settings

if __name__ == "__main__":
    settings = get_settings()
    uvicorn.run(
        "neuraslide.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=os.getenv("NEURASLIDE_DEV_MODE", "").lower() == "true",
        log_level="info"
    )
