from pydantic import BaseModel
from pydantic_settings import BaseSettings
from typing import List, Optional, Union

class IceServer(BaseModel):
  urls: Union[str, List[str]]
  username: Optional[str] = None
  credential: Optional[str] = None

class Settings(BaseSettings):
  HOST: str = "0.0.0.0"
  PORT: int = 4000
  CORS_ORIGINS: List[str] = ["*"]
  ICE_SERVERS: List[IceServer] = [IceServer(urls="stun:stun.l.google.com:19302")]
  LOG_LEVEL: str = "INFO"

  class Config:
    env_file = ".env"

settings = Settings()
