"""FormLogic: conditional rules and field hierarchy checks for dynamic forms."""

from formlogic.config import PRODUCT_VERSION as __version__

__all__ = ["__version__"]
