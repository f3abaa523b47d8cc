"""
botstack.models - SQLAlchemy Database Models

Models are organized by domain:
- base: Base model classes with common functionality
- bot: Bot, Conversation
- tool: Tool, BotTool, ToolUsageMetric, ToolExecutionError
- credential: Credential, Integration
- appointment: Appointment
- lead: Lead

Usage:
    >>> from botstack.models import BotTool
    >>> from botstack.models.database import get_db
    >>>
    >>> async with get_db() as db:
    ...     rows = (await db.execute(select(BotTool))).scalars().all()
"""

from botstack.models.appointment import Appointment
from botstack.models.base import Base
from botstack.models.bot import Bot, Conversation
from botstack.models.credential import Credential, Integration
from botstack.models.lead import Lead
from botstack.models.tool import BotTool, Tool, ToolExecutionError, ToolUsageMetric

__all__ = [
    "Appointment",
    "Base",
    "Bot",
    "BotTool",
    "Conversation",
    "Credential",
    "Integration",
    "Lead",
    "Tool",
    "ToolExecutionError",
    "ToolUsageMetric",
]
