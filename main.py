import uvicorn

from pgdash.config import settings
from pgdash.main import app

if __name__ == "__main__":
    uvicorn.run("pgdash.main:app", host="0.0.0.0", port=8000, reload=settings.debug)

__all__ = ["app"]
