# backend/modules/seating/config/seating_config.py

from pydantic_settings import BaseSettings, SettingsConfigDict


class SeatingConfig(BaseSettings):
    """
    Tunable parameters for table assignment and walk-in intake.

    Every value can be overridden through a ``SEATING_`` prefixed
    environment variable, e.g. ``SEATING_LOOKAHEAD_MINUTES=90``.
    """

    model_config = SettingsConfigDict(env_prefix="SEATING_", case_sensitive=False)

    # Horizon in which a confirmed booking counts as "upcoming" for a table
    LOOKAHEAD_MINUTES: int = 120

    # Arrivals within +/- this many minutes of now are "current"
    URGENCY_THRESHOLD_MINUTES: int = 15

    # Expected occupancy when a booking carries no turn time
    DEFAULT_TURN_TIME_MINUTES: int = 120

    # Walk-in duration for customers who usually bring large parties
    LARGE_PARTY_TURN_TIME_MINUTES: int = 150
    LARGE_PARTY_AVERAGE_SIZE: float = 4.0

    # Cap for exhaustively enumerated swap options
    MAX_SWAP_OPTIONS: int = 10

    # Predefined combinations are only offered from this party size up
    COMBINATION_MIN_PARTY_SIZE: int = 5

    # Walk-ins larger than this always need an explicit confirmation
    LARGE_WALK_IN_PARTY_SIZE: int = 6

    # Displacement conflict tracking
    VACATE_BUFFER_MINUTES: int = 15
    CONFLICT_CRITICAL_MINUTES: int = 30
    CONFLICT_WARNING_MINUTES: int = 60

    # Window of bookings re-read from the store when validating a commit
    REVALIDATION_WINDOW_HOURS: int = 24

    # Timezone used to derive shifts from booking times
    RESTAURANT_TIMEZONE: str = "UTC"


# Global instance
seating_config = SeatingConfig()


def get_seating_config() -> SeatingConfig:
    """Get the seating configuration."""
    return seating_config
