"""bitcoin_navi.api — FastAPI REST interface."""

from bitcoin_navi.api.app import create_app

__all__ = ["create_app"]
