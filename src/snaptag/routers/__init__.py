"""SnapTag API routers package."""

from . import images
from . import tags
