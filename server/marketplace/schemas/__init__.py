"""Pydantic schemas for request/response validation."""

from .booking import *  # noqa: F403
from .common import *  # noqa: F403
from .draft import *  # noqa: F403
from .health import *  # noqa: F403
from .payment import *  # noqa: F403
from .reconciliation import *  # noqa: F403
