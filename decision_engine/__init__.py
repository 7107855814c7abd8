"""
Decision Engine - confidence-gated decision core for financial data aggregation.

Protects the backend from failing upstream data providers and predicts
transaction categories and expense splits from household history.

Main Components:
    - health: Per-provider circuit breaking
    - pipeline: Ordered strategy evaluation and confidence helpers
    - categorisation: Transaction category prediction
    - splits: Shared expense split prediction
    - monitoring: Prediction log and accuracy tracking
    - config: Thresholds, confidences and validation
"""

# Provider health
from .health.health_tracker import (
    HealthTracker,
    HealthRecord,
    CircuitSnapshot,
    CircuitState,
)

# Strategy pipeline
from .pipeline.strategy_pipeline import (
    PredictionCandidate,
    PredictionResult,
    Strategy,
    StrategyPipeline,
)

# Prediction engines
from .categorisation.engine import (
    CategorizationEngine,
    CategorizationStrategy,
    AutoCategorizationResult,
)
from .splits.split_engine import (
    SplitPredictionEngine,
    SplitStrategy,
    SplitSuggestion,
)

# Monitoring
from .monitoring.prediction_log import PredictionLog, PredictionLogEntry
from .monitoring.accuracy_tracker import AccuracyTracker, AccuracyMetrics

# Configuration
from .config.engine_config import (
    HEALTH_CONFIG,
    CATEGORIZATION_CONFIG,
    SPLIT_CONFIG,
    ACCURACY_CONFIG,
)
from .exceptions import InvalidConfigurationError


__version__ = "1.0.0"
__all__ = [
    # Provider health
    "HealthTracker",
    "HealthRecord",
    "CircuitSnapshot",
    "CircuitState",
    # Pipeline
    "PredictionCandidate",
    "PredictionResult",
    "Strategy",
    "StrategyPipeline",
    # Engines
    "CategorizationEngine",
    "CategorizationStrategy",
    "AutoCategorizationResult",
    "SplitPredictionEngine",
    "SplitStrategy",
    "SplitSuggestion",
    # Monitoring
    "PredictionLog",
    "PredictionLogEntry",
    "AccuracyTracker",
    "AccuracyMetrics",
    # Configuration
    "HEALTH_CONFIG",
    "CATEGORIZATION_CONFIG",
    "SPLIT_CONFIG",
    "ACCURACY_CONFIG",
    "InvalidConfigurationError",
]
