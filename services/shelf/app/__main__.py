import uvicorn

from common.config import settings
from app.main import asgi

if __name__ == "__main__":
    # proxy_headers: honour X-Forwarded-For from the reverse proxy in front of us
    uvicorn.run(
        asgi,
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
        proxy_headers=True,
        forwarded_allow_ips="*",
    )
