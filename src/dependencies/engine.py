"""Draft engine dependency.

One engine per process: slots live in memory and must survive across
requests. The engine's HTTP clients are not opened until first use, so
importing this module does not touch the network.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Annotated

from fastapi import Depends

from services.drafts.engine import DraftEngine


@lru_cache
def get_engine() -> DraftEngine:
    """FastAPI dependency returning the process-wide DraftEngine."""
    return DraftEngine.from_settings()


Engine = Annotated[DraftEngine, Depends(get_engine)]
