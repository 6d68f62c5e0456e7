import time
from functools import wraps

from fastapi import HTTPException
from pymongo.errors import PyMongoError

from app.core.exceptions import ServiceUnavailable
from app.utiles.logger import get_logger

logger = get_logger(__name__)


def handle_exceptions(func):
    """
    Wrap an async endpoint:
    - domain errors (HTTPException subclasses) pass through untouched
    - Mongo driver failures become a 503
    - anything else becomes a logged 500
    Place it *below* the router decorator so FastAPI registers the wrapper.
    """
    @wraps(func)
    async def wrapper(*args, **kwargs):
        started = time.perf_counter()
        logger.info(f"Calling endpoint: {func.__name__}")
        try:
            result = await func(*args, **kwargs)
        except HTTPException as he:
            logger.warning(f"{func.__name__} -> {he.status_code}: {he.detail}")
            raise
        except PyMongoError as e:
            logger.exception(f"Database error in {func.__name__}: {e}")
            raise ServiceUnavailable("Database unavailable, please retry") from e
        except Exception as e:
            logger.exception(f"Exception in endpoint: {func.__name__} - {str(e)}")
            raise HTTPException(status_code=500, detail="Internal Server Error") from e
        logger.info(f"Endpoint {func.__name__} completed in {(time.perf_counter() - started) * 1000:.1f} ms")
        return result
    return wrapper
