"""Home field advantage analysis for multi-environment trials."""

import logging

from homefield.core.types import HomeFieldResult, TrialSchema
from homefield.ops.hfa import LEVELS, calculate_hfa, permute_hfa
from homefield.ops.home import get_home_site, id_home, select_home
from homefield.ops.temporal import temporal_hfa

logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__ = [
    "HomeFieldResult",
    "LEVELS",
    "TrialSchema",
    "calculate_hfa",
    "get_home_site",
    "id_home",
    "permute_hfa",
    "select_home",
    "temporal_hfa",
]

__version__ = "0.3.0"
