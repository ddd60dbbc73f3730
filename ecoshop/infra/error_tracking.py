"""
Suivi des erreurs inattendues (Sentry), partagé par l'API et le worker d'événements.
- Sans SENTRY_DSN: rien n'est initialisé, capture_exception reste sans effet.
"""
import logging

import sentry_sdk

from ecoshop.config import APP_ENV, SENTRY_DSN, SENTRY_TRACES_SAMPLE_RATE

logger = logging.getLogger(__name__)


def init_error_tracking(dsn: str = SENTRY_DSN, environment: str = APP_ENV) -> bool:
    if not dsn:
        logger.info("Sentry désactivé (SENTRY_DSN absent)")
        return False
    sentry_sdk.init(
        dsn=dsn,
        environment=environment,
        traces_sample_rate=SENTRY_TRACES_SAMPLE_RATE,
        send_default_pii=False,
    )
    logger.info("Sentry initialisé environment=%s", environment)
    return True
