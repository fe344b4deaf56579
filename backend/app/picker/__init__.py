# Media picker
# Client-side controllers that drive the media service over a request/response
# boundary and own all ephemeral picking state.
#
# Components:
# - state: cursor stack + ordered selection with a hero
# - transport: in-process and HTTP access to the media service
# - controller: the picker (paging, debounce, selection, uploads)
# - library: the plain media library page (refresh + upload)

from .state import CursorStack, PageCursor, SelectionState
from .transport import HttpMediaTransport, MediaRequestError, MediaTransport, ServiceTransport
from .controller import MediaPickerController, PickerResult, coerce_initial_selection
from .library import MediaLibraryController

__all__ = [
    # State
    "CursorStack",
    "PageCursor",
    "SelectionState",
    # Transport
    "MediaTransport",
    "ServiceTransport",
    "HttpMediaTransport",
    "MediaRequestError",
    # Controllers
    "MediaPickerController",
    "PickerResult",
    "coerce_initial_selection",
    "MediaLibraryController",
]
