from envelope_categorizer.core import settings
from envelope_categorizer.logger import get_logger, setup_logging
from envelope_categorizer.manager import CategorizerService
from envelope_categorizer.services.history import TransactionHistoryProvider
from envelope_categorizer.services.training import RetrainScheduler

logger = get_logger(__name__)


def create_service(history: TransactionHistoryProvider | None = None) -> CategorizerService:
    setup_logging()
    logger.info("Initializing categorizer...")
    settings.log_environment()

    if history is None:
        logger.warning("No transaction history provider given. Envelope models will stay untrained.")

    service = CategorizerService(history=history)
    logger.info("Categorizer initialized.")
    return service


def create_scheduler(service: CategorizerService, interval_seconds: float | None = None) -> RetrainScheduler:
    return RetrainScheduler(
        service=service,
        interval_seconds=interval_seconds or settings.RETRAIN_INTERVAL_SECONDS,
    )
