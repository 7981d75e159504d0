"""
SQLAlchemy ORM models.

All models imported here to ensure they are registered with Base.metadata.
Import order matters: base models before dependent models.
"""

from trackspace.models.base import Base, TimestampMixin, UUIDMixin
from trackspace.models.user import ContextType, User
from trackspace.models.member import OrgMember, OrgRole
from trackspace.models.organization import Organization, PersonalSpace
from trackspace.models.workspace import MemberRole, Workspace, WorkspaceMember
from trackspace.models.project import Project, ProjectMember, ProjectStatus
from trackspace.models.task import Task, TaskAssignee, TaskPriority, TaskStatus, TaskWatcher
from trackspace.models.comment import Comment, CommentReaction
from trackspace.models.activity_log import ActivityAction, ActivityLog
from trackspace.models.notification import Notification, NotificationType

__all__ = [
    "Base",
    "TimestampMixin",
    "UUIDMixin",
    "ContextType",
    "User",
    "OrgMember",
    "OrgRole",
    "Organization",
    "PersonalSpace",
    "MemberRole",
    "Workspace",
    "WorkspaceMember",
    "Project",
    "ProjectMember",
    "ProjectStatus",
    "Task",
    "TaskAssignee",
    "TaskPriority",
    "TaskStatus",
    "TaskWatcher",
    "Comment",
    "CommentReaction",
    "ActivityAction",
    "ActivityLog",
    "Notification",
    "NotificationType",
]
