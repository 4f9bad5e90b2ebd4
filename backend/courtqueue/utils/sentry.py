import logging
import os
from typing import Optional

import sentry_sdk
from sentry_sdk.integrations.fastapi import FastApiIntegration

logger = logging.getLogger(__name__)


def sample_rate(env_var: str, default: float = 0.0) -> float:
    """Read a Sentry sample rate in ``[0, 1]`` from the environment."""

    raw_value = os.getenv(env_var)
    if raw_value is None:
        return default

    try:
        value = float(raw_value)
    except ValueError:
        logger.warning(
            "%s is not a valid float (got %r); defaulting to %.2f",
            env_var,
            raw_value,
            default,
        )
        return default

    if not 0.0 <= value <= 1.0:
        logger.warning(
            "%s must be between 0 and 1 (got %s); defaulting to %.2f",
            env_var,
            value,
            default,
        )
        return default

    return value


def sentry_dsn() -> Optional[str]:
    return (os.getenv("SENTRY_DSN") or "").strip() or None


def init_sentry() -> bool:
    """Initialise error reporting for the court queue API.

    Returns ``False`` when no DSN is configured, in which case Sentry stays
    disabled and errors are only logged.
    """

    dsn = sentry_dsn()
    if not dsn:
        logger.info("SENTRY_DSN not provided; skipping Sentry initialization.")
        return False

    environment = (os.getenv("SENTRY_ENVIRONMENT") or "").strip() or None
    sentry_sdk.init(
        dsn=dsn,
        integrations=[FastApiIntegration()],
        environment=environment,
        traces_sample_rate=sample_rate("SENTRY_TRACES_SAMPLE_RATE"),
        profiles_sample_rate=sample_rate("SENTRY_PROFILES_SAMPLE_RATE"),
    )
    logger.info(
        "Initialized Sentry%s",
        f" (environment={environment})" if environment else "",
    )
    return True
