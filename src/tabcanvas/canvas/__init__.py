"""Canvas engine: tab and layout models, the store and its policy layers."""

from .layout_model import AnchorPosition, DropPosition, GroupId, LayoutState, SplitMode
from .lifecycle import TabLifecycle
from .state import CanvasState, TabLocation
from .store import CanvasStore
from .tab_model import CanvasTab, ClosedTabRecord, EditorGroupState, PanelContent, TabState

__all__ = [
    "AnchorPosition",
    "CanvasState",
    "CanvasStore",
    "CanvasTab",
    "ClosedTabRecord",
    "DropPosition",
    "EditorGroupState",
    "GroupId",
    "LayoutState",
    "PanelContent",
    "SplitMode",
    "TabLifecycle",
    "TabLocation",
    "TabState",
]
