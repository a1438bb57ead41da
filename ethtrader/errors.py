"""Error taxonomy shared by every engine component."""

from enum import Enum
from typing import Any, Dict, Optional


class Step(str, Enum):
    """Operation step at which a failure occurred."""
    RESOLUTION = "resolution"
    CONVERSION = "conversion"
    PROBING = "probing"
    OVERRIDE_CONSTRUCTION = "override-construction"
    CALL = "call"
    DECODE = "decode"


class EngineError(Exception):
    """Base class for classified engine failures."""

    kind = "EngineError"

    def __init__(self, message: str, step: Optional[Step] = None):
        super().__init__(message)
        self.message = message
        self.step = step

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind,
            "step": self.step.value if self.step else None,
            "message": self.message,
        }

    def __str__(self) -> str:
        if self.step:
            return f"{self.kind} during {self.step.value}: {self.message}"
        return f"{self.kind}: {self.message}"


class UnknownSymbol(EngineError):
    kind = "UnknownSymbol"


class AmbiguousSymbol(EngineError):
    kind = "AmbiguousSymbol"


class InvalidAddress(EngineError):
    kind = "InvalidAddress"


class InvalidAmount(EngineError):
    kind = "InvalidAmount"


class PrecisionLoss(EngineError):
    kind = "PrecisionLoss"


class Overflow(EngineError):
    kind = "Overflow"


class NoLiquidity(EngineError):
    kind = "NoLiquidity"


class SlippageExceeded(EngineError):
    kind = "SlippageExceeded"


class SimulationReverted(EngineError):
    kind = "SimulationReverted"


class InvalidSlippage(EngineError):
    kind = "InvalidSlippage"


class TransportFailure(EngineError):
    kind = "TransportFailure"


class CallTimeout(TransportFailure):
    """An RPC call did not answer within the configured timeout."""
    kind = "TransportFailure"


class CallReverted(EngineError):
    """An eth_call or eth_estimateGas reverted.

    Raised by the RPC boundary only; the prober and the simulator turn it
    into a missing candidate or a SimulationReverted respectively.
    """

    kind = "CallReverted"

    def __init__(self, message: str, step: Optional[Step] = None, reason: Optional[str] = None):
        super().__init__(message, step)
        self.reason = reason
