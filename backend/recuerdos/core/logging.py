import logging

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT)
    # boto3 is chatty at INFO when resolving credentials
    logging.getLogger("botocore").setLevel(logging.WARNING)
