from .seating_config import SeatingConfig, seating_config, get_seating_config

__all__ = ["SeatingConfig", "seating_config", "get_seating_config"]
