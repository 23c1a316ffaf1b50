"""
Triage Queue Service Runner
"""

import uvicorn
from triage_service.core.config import Config


def main():
    """Run the triage queue server."""
    uvicorn.run(
        "triage_service.api.main:app",
        host=Config.HOST,
        port=Config.PORT,
        reload=Config.DEBUG,
        log_level=Config.LOG_LEVEL.lower()
    )


if __name__ == "__main__":
    main()
