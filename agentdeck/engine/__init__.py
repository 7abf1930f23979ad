"""AgentDeck engine: transcript reconciliation and live session status."""
from .config import DeckConfig
from .errors import (
    ApiError,
    ApprovalError,
    ConfigError,
    DeckError,
    SendError,
    SessionActionError,
    TransportError,
)
from .transcript import TranscriptReconciler, truncate_result
from .status import SessionStatusService
from .approval import ApprovalOutcome, ApprovalRequest, ApprovalState, ApprovalWorkflow
from .viewport import ScrollMetrics, ViewportController, ViewportWindow
from .sender import OptimisticSender

__all__ = [
    # Session view (lazy import to avoid circular deps)
    "SessionView",
    # Components
    "TranscriptReconciler",
    "truncate_result",
    "SessionStatusService",
    "ApprovalWorkflow",
    "ApprovalRequest",
    "ApprovalState",
    "ApprovalOutcome",
    "ViewportController",
    "ViewportWindow",
    "ScrollMetrics",
    "OptimisticSender",
    # Config
    "DeckConfig",
    # YAML config (lazy import)
    "load_yaml_config",
    "discover_config_path",
    # Errors
    "DeckError",
    "ConfigError",
    "TransportError",
    "ApiError",
    "SendError",
    "ApprovalError",
    "SessionActionError",
]


def __getattr__(name: str):
    if name == "SessionView":
        from .session_view import SessionView
        return SessionView
    if name == "load_yaml_config":
        from .yaml_config import load_yaml_config
        return load_yaml_config
    if name == "discover_config_path":
        from .yaml_config import discover_config_path
        return discover_config_path
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
