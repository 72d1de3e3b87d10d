"""Data models for vibe-ticket."""

from .ids import TaskId, TicketId
from .ticket import Priority, Status, Task, Ticket, TicketExtensions

__all__ = ["TicketId", "TaskId", "Ticket", "Task", "TicketExtensions", "Status", "Priority"]
