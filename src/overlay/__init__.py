"""In-page prompt enhancement controller.

Binds to the prompt composer of a host page, captures settled text, asks the
enhancement service for a better prompt and offers it back through an
overlay icon, underline and suggestion panel.
"""

from .cache import EnhancementCache, SuppressionFlag
from .client import RetryingClient, classify_reply
from .debounce import Debouncer
from .exceptions import (
    EnhancementError,
    ExhaustedRetries,
    InputTooShort,
    LocatorNotFound,
    Superseded,
    TerminalFailure,
    TransientFailure,
)
from .locator import locate, require_surface
from .models import (
    EnhancementRequest,
    EnhancementResult,
    RetryPolicy,
    SurfaceKind,
    UIState,
    Usage,
)
from .page import Element, Page, Rect, is_visible
from .relay import HttpRelay, RelayChannel
from .session import EnhancerSession
from .state import UIStateController
from .surface import SurfaceAdapter
from .view import OverlayView
from .watcher import MutationWatcher


__all__ = [
    "Debouncer",
    "Element",
    "EnhancementCache",
    "EnhancementError",
    "EnhancementRequest",
    "EnhancementResult",
    "EnhancerSession",
    "ExhaustedRetries",
    "HttpRelay",
    "InputTooShort",
    "LocatorNotFound",
    "MutationWatcher",
    "OverlayView",
    "Page",
    "Rect",
    "RelayChannel",
    "RetryPolicy",
    "RetryingClient",
    "Superseded",
    "SuppressionFlag",
    "SurfaceAdapter",
    "SurfaceKind",
    "TerminalFailure",
    "TransientFailure",
    "UIState",
    "UIStateController",
    "Usage",
    "classify_reply",
    "is_visible",
    "locate",
    "require_surface",
]
