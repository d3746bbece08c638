"""MediBook - Hospital appointment booking and access control service."""

import uvicorn

from medibook.config import settings


if __name__ == "__main__":
    uvicorn.run(
        "medibook.main:app",
        host="0.0.0.0",
        port=settings.PORT,
        reload=settings.DEBUG,
    )
