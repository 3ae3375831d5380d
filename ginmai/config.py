# Environment configuration (.env supported)

import os

from dotenv import load_dotenv

load_dotenv()

# DATABASE_URL example:
# postgresql+psycopg2://ginmai:ginmai@db:5432/ginmai
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./ginmai.db")

# Inside docker compose this is the service name (redis), not localhost
REDIS_URL = os.getenv("REDIS_URL", "redis://redis:6379/0")

KAKAO_REST_API_KEY = os.getenv("KAKAO_REST_API_KEY", "")
KAKAO_LOCAL_BASE_URL = os.getenv("KAKAO_LOCAL_BASE_URL", "https://dapi.kakao.com")

EXPO_PUSH_ENDPOINT = os.getenv("EXPO_PUSH_ENDPOINT", "https://exp.host/--/api/v2/push/send")

NEARBY_RADIUS_KM = float(os.getenv("NEARBY_RADIUS_KM", "5"))
NEARBY_LIMIT = int(os.getenv("NEARBY_LIMIT", "50"))

EXPIRY_SWEEP_ENABLED = os.getenv("EXPIRY_SWEEP_ENABLED") == "1"
EXPIRY_SWEEP_INTERVAL_SEC = float(os.getenv("EXPIRY_SWEEP_INTERVAL_SEC", "300"))

REMINDER_LEAD_MIN = int(os.getenv("REMINDER_LEAD_MIN", "10"))
REMINDER_MIN_DELAY_SEC = int(os.getenv("REMINDER_MIN_DELAY_SEC", "30"))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
