"""Application configuration via environment variables."""

from __future__ import annotations

import logging

from pydantic_settings import BaseSettings

log = logging.getLogger("wellness.config")


class Settings(BaseSettings):
    # Datastore
    store_provider: str = "memory"  # "memory" or "supabase"
    supabase_url: str = ""
    supabase_service_role_key: str = ""
    request_timeout: float = 15.0

    # Email (SMTP)
    smtp_host: str = ""
    smtp_port: int = 587
    smtp_username: str = ""
    smtp_password: str = ""
    email_from: str = "contact@midtownbiohack.com"
    contact_email: str = "contact@midtownbiohack.com"

    # Booking
    booking_location: str = "atmos"
    known_locations: list[str] = ["atmos"]
    # Cosmetic spinner delay between wizard steps (seconds)
    step_transition_delay: float = 0.3
    # Idle wizards are dropped from the registry after this many seconds (0 = never)
    wizard_session_ttl: float = 1800.0

    # Admin auth
    admin_api_key: str = ""

    # Server
    host: str = "127.0.0.1"
    port: int = 8080
    debug: bool = False

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}

    def validate_startup(self) -> list[str]:
        """Validate configuration at startup. Returns warnings, raises on errors."""
        warnings: list[str] = []

        if self.store_provider not in ("memory", "supabase"):
            raise ValueError(
                f"STORE_PROVIDER must be 'memory' or 'supabase', got {self.store_provider!r}."
            )

        if self.store_provider == "supabase":
            if not self.supabase_url or not self.supabase_service_role_key:
                raise ValueError(
                    "SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY are required "
                    "when STORE_PROVIDER=supabase."
                )
        else:
            warnings.append(
                "STORE_PROVIDER=memory. Bookings are kept in-process and lost on restart."
            )

        if not self.admin_api_key:
            if self.debug:
                warnings.append(
                    "ADMIN_API_KEY not set. Admin APIs are open (DEBUG=true)."
                )
            else:
                warnings.append(
                    "ADMIN_API_KEY not set. Admin APIs are locked in production. "
                    "Set ADMIN_API_KEY in .env to enable admin access."
                )

        if not self.smtp_host:
            warnings.append(
                "SMTP_HOST not set. Confirmation emails will only be logged."
            )

        if self.booking_location not in self.known_locations:
            warnings.append(
                f"BOOKING_LOCATION {self.booking_location!r} is not in KNOWN_LOCATIONS; "
                "location analytics will never count new bookings."
            )

        return warnings


settings = Settings()
