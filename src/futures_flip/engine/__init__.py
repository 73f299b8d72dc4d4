from .closer import PositionCloser
from .metadata import SymbolFilterCache, UnknownSymbolError
from .orchestrator import OrderSizingError, SignalValidationError, TradeOrchestrator
from .retry import OrderRetryEngine, RetryExhausted
from .sizing import QuantityCalculator, round_step

__all__ = [
    "OrderRetryEngine",
    "OrderSizingError",
    "PositionCloser",
    "QuantityCalculator",
    "RetryExhausted",
    "SignalValidationError",
    "SymbolFilterCache",
    "TradeOrchestrator",
    "UnknownSymbolError",
    "round_step",
]
