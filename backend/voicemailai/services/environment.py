import os


def is_production() -> bool:
    return os.getenv("APP_ENV", "development").lower() == "production"


def app_domain() -> str:
    return os.getenv("APP_DOMAIN", "http://localhost:3000").rstrip("/")


def dev_bypass_enabled() -> bool:
    return not is_production() and os.getenv("DEV_BYPASS_STRIPE", "false").lower() == "true"
