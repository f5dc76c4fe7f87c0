"""
Agents — générateurs thématiques.

Chaque thème est une TopicStrategy exécutée par le pipeline commun
(`base.run_pipeline`).
"""

from .base import AgentToolkit, TopicGenerator, TopicStrategy, compute_confidence, run_pipeline
from .climate import CLIMATE_STRATEGY
from .crop import CROP_STRATEGY
from .extension import EXTENSION_STRATEGY
from .livestock import LIVESTOCK_STRATEGY
from .market import MARKET_STRATEGY
from .pest import PEST_STRATEGY

TOPIC_STRATEGIES = (
    CROP_STRATEGY,
    LIVESTOCK_STRATEGY,
    PEST_STRATEGY,
    CLIMATE_STRATEGY,
    MARKET_STRATEGY,
    EXTENSION_STRATEGY,
)

__all__ = [
    "AgentToolkit",
    "TopicGenerator",
    "TopicStrategy",
    "compute_confidence",
    "run_pipeline",
    "TOPIC_STRATEGIES",
]
