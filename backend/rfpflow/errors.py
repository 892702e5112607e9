# errors.py
# Typed failures raised by the workflow layer; main.py maps them to HTTP codes.


class RfpFlowError(Exception):
    """Base class for every error this package raises on purpose."""


class NotFoundError(RfpFlowError):
    def __init__(self, kind: str, entity_id: str):
        self.kind = kind
        self.entity_id = entity_id
        super().__init__(f"{kind} not found")


class InsufficientDataError(RfpFlowError):
    """Comparison needs at least two proposals."""


class DegenerateInputError(RfpFlowError):
    """Input the scoring engine cannot work with at all (e.g. an empty batch)."""


class InvalidRequestError(RfpFlowError):
    """Request is well-formed but refers to nothing usable."""


class ExternalCapabilityError(RfpFlowError):
    """An AI call failed, timed out or returned something unusable."""
