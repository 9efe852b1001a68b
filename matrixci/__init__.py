import logging

from matrixci.config import config

logging.basicConfig(
    format='%(asctime)s [%(name)s] %(levelname)s: %(message)s',
    level=logging.INFO,
)
if config.debug:
    logging.getLogger('matrixci.runner').setLevel(logging.DEBUG)
    logging.getLogger('matrixci.utils').setLevel(logging.DEBUG)
