from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from typing import Optional
from core.settings import Settings, settings as default_settings
from helpers.utils.signaling_router import SignalingRouter
from helpers.utils.websocket_connection_manager import ConnectionManager
from .signaling.signaling_route import router as signaling_router

def create_app(settings: Optional[Settings] = None) -> FastAPI:
  settings = settings or default_settings
  app = FastAPI()

  app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_methods=["GET", "POST"],
    allow_headers=["*"],
  )

  # One registry per application, shared by every connection it accepts
  app.state.settings = settings
  app.state.connection_manager = ConnectionManager()
  app.state.signaling_router = SignalingRouter(app.state.connection_manager, settings.ICE_SERVERS)

  @app.get('/')
  async def get_homepage():
    return "Signaling server is running!"

  app.include_router(signaling_router, prefix="/api/signaling", tags=["signaling"])

  return app

app = create_app()
