import os


def get_settings_module() -> str:
    # Environment comes from APP_ENV, default is 'development'
    env = os.getenv("APP_ENV", "development").lower()

    if env in {"prod", "production"}:
        return "config.production"

    if env in {"test", "testing"}:
        return "config.testing"

    # Everything else falls back to development
    return "config.development"
