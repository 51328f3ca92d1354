"""campaignforge: turn flat data rows into ad campaign structures."""

from .errors import CampaignForgeError, ConfigurationError, GroupKeyError, UnsafePatternError
from .modules.fallback import FallbackStrategyEngine
from .modules.grouping import HierarchicalGrouper
from .modules.rules import RuleEngine
from .modules.transforms import TransformEngine
from .modules.variables import VariableEngine
from .services.pipeline_service import CampaignPipelineService

__version__ = "0.1.0"
__all__ = [
    "CampaignForgeError",
    "CampaignPipelineService",
    "ConfigurationError",
    "FallbackStrategyEngine",
    "GroupKeyError",
    "HierarchicalGrouper",
    "RuleEngine",
    "TransformEngine",
    "UnsafePatternError",
    "VariableEngine",
]
