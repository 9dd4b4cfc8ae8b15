"""
Web 진입점

실행 방법:
    python -m web
"""

import uvicorn

from core.config.loader import get_settings

if __name__ == "__main__":
    config = get_settings().config
    uvicorn.run(
        "web.app:app",
        host=config.web_host,
        port=config.web_port,
        reload=False,
    )
