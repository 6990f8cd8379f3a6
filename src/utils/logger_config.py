import logging
import os
import re
from datetime import datetime

# Secrets known once config is read; every RedactTokenFilter masks these
_REGISTERED_SECRETS = set()


def register_secret(value):
    """
    Mask ``value`` in every logger built by setup_logger from now on

    Parameters
    value (str) : Secret to hide, e.g. the Socrata app token
    """
    if value:
        _REGISTERED_SECRETS.add(value)


class RedactTokenFilter(logging.Filter):
    """
    Masks Socrata app tokens in log records.

    Parameters
    secrets (iterable of str) : Literal secret values to mask as well
    """

    # requests encodes $$ as %24%24 in the URLs it builds
    TOKEN_PATTERN = re.compile(r'((?:\$\$|%24%24)app_token=)[^&\s]+')

    def __init__(self, secrets=()):
        super().__init__()
        self.secrets = [s for s in secrets if s]

    def filter(self, record):
        message = record.getMessage()
        redacted = self.TOKEN_PATTERN.sub(r'\1***', message)
        for secret in set(self.secrets) | _REGISTERED_SECRETS:
            redacted = redacted.replace(secret, '***')
        if redacted != message:
            record.msg = redacted
            record.args = ()
        return True


def setup_logger(name, secrets=()):
    """
    Basic Custom Logging formatting and handling

    Parameters
    name (str) : Name of the logger 
    secrets (iterable of str) : Values that must never show up in the logs

    Returns:
    logging.Logger : Configured Logger Instance
    """

    # Create Logger
    logger = logging.getLogger(name)
    if logger.handlers:
        # streamlit re-runs the script, don't stack handlers
        return logger
    logger.setLevel(logging.DEBUG)

    log_dir = os.getenv('LOG_DIR', 'logs')
    os.makedirs(log_dir, exist_ok=True)

    # Configs for how logs will appear in logs/
    file_format = logging.Formatter(
        '%(levelname)s : %(name)s : %(funcName)s : %(lineno)d : %(message)s'
    )

    log_file = os.path.join(log_dir, f'vacant_buildings_{datetime.now().strftime("%m%d%Y")}.log')
    file_handler = logging.FileHandler(log_file)
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(file_format)

    # Console logs configs
    console_format = logging.Formatter(
        '%(asctime)s - %(levelname)s - %(message)s'
    )
    console_handler = logging.StreamHandler()
    console_handler.setLevel(logging.INFO)
    console_handler.setFormatter(console_format)

    # Add the config to the Logger obj
    logger.addFilter(RedactTokenFilter(secrets))
    logger.addHandler(file_handler)
    logger.addHandler(console_handler)

    return logger
