import os
import logging

logger = logging.getLogger(__name__)


def _canon_prefix(val):
    """
    Normalize API prefix to always be exactly like '/api':
      - defaults to '/api' when unset/empty
      - ensures a single leading slash
      - removes any trailing slash (except for root)
    """
    val = (val or "/api").strip()
    if not val.startswith("/"):
        val = "/" + val
    if len(val) > 1 and val.endswith("/"):
        val = val[:-1]
    return val


def _parse_minutes(env_var: str, default: float) -> float:
    raw_value = os.getenv(env_var)
    if raw_value is None or not raw_value.strip():
        return default
    try:
        value = float(raw_value)
    except ValueError:
        logger.warning(
            "%s is not a valid number (got %r); defaulting to %s",
            env_var,
            raw_value,
            default,
        )
        return default
    if value <= 0:
        logger.warning("%s must be positive; defaulting to %s", env_var, default)
        return default
    return value


API_PREFIX = _canon_prefix(os.getenv("API_PREFIX"))

# Rest credited to entries containing a player who has not played yet.
NEVER_PLAYED_REST_MINUTES = _parse_minutes("FAIRNESS_NEVER_PLAYED_MINUTES", 999999.0)
