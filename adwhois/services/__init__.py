"""Application service layer.

Routers import from here:
    from adwhois.services import ...
"""

from .ad import ad_cfg_from_env

__all__ = [
    "ad_cfg_from_env",
]
