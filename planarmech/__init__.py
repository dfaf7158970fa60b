"""Acausal connector composition for planar mechanical sensor models.

:copyright: Copyright 2024-2025 by MLL <mll@mll.bio>.
:license: Apache 2.0.  See LICENSE for details.
"""

import logging

from planarmech._logging import enable_logging_handlers

logger = logging.getLogger(__package__)
logger.addHandler(logging.NullHandler())
