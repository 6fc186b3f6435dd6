import logging
import sys

# Third-party loggers that flood DEBUG output with per-request or per-glyph lines.
_NOISY_LOGGERS = ("httpx", "httpcore", "openai", "pdfminer", "PIL")


class Log:
    """Process-wide logger for ingestion runs.

    Worker threads share one logger, so every record carries the thread name
    to tell concurrent units apart.
    """

    _logger: logging.Logger = logging.getLogger("capture")

    @classmethod
    def configure(cls, log_level: str, quiet_libraries: bool = True) -> None:
        """Attach a stdout handler once and set the level.

        Library loggers are capped at WARNING unless ``quiet_libraries`` is off.
        """
        cls._logger.setLevel(log_level.upper())
        cls._logger.propagate = False
        if not cls._logger.handlers:
            handler = logging.StreamHandler(sys.stdout)
            handler.setFormatter(
                logging.Formatter("%(asctime)s [%(levelname)s] %(threadName)s %(message)s")
            )
            cls._logger.addHandler(handler)
        if quiet_libraries:
            for name in _NOISY_LOGGERS:
                logging.getLogger(name).setLevel(logging.WARNING)

    @classmethod
    def info(cls, message: str, **kwargs: object) -> None:
        cls._logger.info(message, extra=kwargs)

    @classmethod
    def error(cls, message: str, **kwargs: object) -> None:
        cls._logger.error(message, extra=kwargs)

    @classmethod
    def exception(cls, message: str, **kwargs: object) -> None:
        """Log an error with the active exception's traceback."""
        cls._logger.exception(message, extra=kwargs)

    @classmethod
    def warning(cls, message: str, **kwargs: object) -> None:
        cls._logger.warning(message, extra=kwargs)

    @classmethod
    def debug(cls, message: str, **kwargs: object) -> None:
        cls._logger.debug(message, extra=kwargs)
