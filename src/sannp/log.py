import logging
import os

ll = os.environ.get('SANNP_LOG_LEVEL', default='WARNING')

logging.basicConfig(
    level=getattr(logging, ll.upper()),
    format='%(name)-12s: %(levelname)-8s %(message)s',
)
logger = logging.getLogger('sannp')
