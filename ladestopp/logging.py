import logging
import sys

# Create the ladestopp logger instance
log = logging.getLogger("ladestopp")
log.setLevel(logging.INFO)
handler = logging.StreamHandler(sys.stdout)
handler.setFormatter(logging.Formatter("%(asctime)s (%(levelname)s): %(message)s", datefmt="%Y-%m-%d %H:%M:%S"))
log.addHandler(handler)

# Route warnings from the scheduler and the WSGI server through the same handler
for _name in ("apscheduler", "waitress"):
    _logger = logging.getLogger(_name)
    _logger.setLevel(logging.WARNING)
    _logger.addHandler(handler)
