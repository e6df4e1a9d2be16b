import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from core.config import get_settings
from core.db_core import initialize_firebase
from routers import auth, navigation, sections

settings = get_settings()
logging.basicConfig(level=settings.log_level)
logger = logging.getLogger(__name__)

# ------------------------------
# Firebase Admin SDK Initialization
# ------------------------------
initialize_firebase()

# ------------------------------
# FastAPI App Setup
# ------------------------------
app = FastAPI(title="Portfolio CMS Admin API", version="1.0.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/api/health")
async def health():
    return {"message": "Portfolio CMS admin backend is running!"}


# ------------------------------
# Include Routers
# ------------------------------
app.include_router(auth.router, prefix="/api/auth", tags=["Authentication"])
app.include_router(sections.router, prefix="/api/sections", tags=["Content Editors"])
# Registered last: its catch-all route redirects every unknown path.
app.include_router(navigation.router, tags=["Navigation"])

# ------------------------------
# Local Development Only
# ------------------------------
if __name__ == "__main__":
    import uvicorn
    uvicorn.run("main:app", host="127.0.0.1", port=8000, reload=True)
