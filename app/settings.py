import os

db_url = os.environ.get("DB_URL", "sqlite://:memory:")
REDIS_URL = os.environ.get("REDIS_URL", "redis://localhost:6379/0")
GENERATE_SCHEMAS = os.environ.get("GENERATE_SCHEMAS", "false").lower() == "true"
LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

# Business-hours grid used by the availability engine (facility local time)
BUSINESS_DAY_START = os.environ.get("BUSINESS_DAY_START", "09:00")
BUSINESS_DAY_END = os.environ.get("BUSINESS_DAY_END", "17:00")
SLOT_STEP_MINUTES = int(os.environ.get("SLOT_STEP_MINUTES", "60"))

TORTOISE_MODULES = {"models": ["app.models"]}
