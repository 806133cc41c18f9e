import logging
import sys


class ContextFormatter(logging.Formatter):
    """Custom formatter that handles optional resource and stage fields."""
    def format(self, record):
        # Add default values for resource and stage if not present
        if not hasattr(record, 'resource'):
            record.resource = '-'
        if not hasattr(record, 'stage'):
            record.stage = '-'
        return super().format(record)


def configure_logging(level: int = logging.INFO) -> None:
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(ContextFormatter(
        "%(asctime)s %(levelname)s %(name)s [resource=%(resource)s stage=%(stage)s] - %(message)s"
    ))
    logging.basicConfig(
        level=level,
        handlers=[handler],
    )
