import uvicorn  # type: ignore

from accessgate.core import config
from accessgate.utils import get_logger

log = get_logger(__name__)

if __name__ == "__main__":
    log.info("Running accessgate on %s:%s", config.HOST, config.PORT)
    uvicorn.run("accessgate.main:app", reload=config.RELOAD, host=config.HOST, port=config.PORT,
                log_level=config.LOG_LEVEL.lower())
