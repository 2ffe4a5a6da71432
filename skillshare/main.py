# skillshare/main.py
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from skillshare import config
from skillshare.routes import chat_routes, feedback_routes, socket_routes
from skillshare.auth import auth_routes
from skillshare.database.db import Base, engine
from skillshare.services.session_hub import SessionHub
import logging

# Configure logging
logging.basicConfig(
    level=config.LOG_LEVEL,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Ensures all database tables are created when the application starts."""
    Base.metadata.create_all(bind=engine)
    logging.info("Database tables created/checked.")
    yield


app = FastAPI(title="SkillShare API", lifespan=lifespan)

# Owns the matchmaking queue and live connections for this process
app.state.hub = SessionHub()

# CORS Configuration
app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(auth_routes.router, prefix="/api/auth")
app.include_router(chat_routes.router, prefix="/api/chats")
app.include_router(feedback_routes.router, prefix="/api/feedback")
app.include_router(socket_routes.router)


@app.get("/")
async def root():
    """Root endpoint for the API."""
    return {"message": "SkillShare API is running"}


if __name__ == "__main__":
    import os
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=int(os.getenv("PORT", 8000)))
