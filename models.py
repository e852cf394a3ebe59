import enum
from datetime import datetime, timedelta

from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()


# ============================================
# Enumerations
# ============================================
class Role(str, enum.Enum):
    USER = 'USER'
    ADMIN = 'ADMIN'


class TaskStatus(str, enum.Enum):
    TODO = 'TODO'
    IN_PROGRESS = 'IN_PROGRESS'
    DONE = 'DONE'


# Integer primary keys are signed 64-bit in every supported database
MAX_ID = 2**63 - 1


def is_valid_id(value):
    return isinstance(value, int) and 1 <= value <= MAX_ID


def _isoformat(value):
    return value.isoformat() if value else None


class TimestampMixin:
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow, index=True)
    updated_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    def touch(self):
        """Refresh updated_at, always moving it forward"""
        now = datetime.utcnow()
        if self.updated_at is not None and now <= self.updated_at:
            now = self.updated_at + timedelta(microseconds=1)
        self.updated_at = now


# ============================================
# 1. User
# ============================================
class User(TimestampMixin, db.Model):
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    email = db.Column(db.String(255), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(255), nullable=False)
    role = db.Column(
        db.Enum(Role, native_enum=False, length=10, validate_strings=True),
        nullable=False,
        default=Role.USER
    )

    projects = db.relationship(
        'Project', backref='owner', lazy=True, order_by='Project.created_at.desc()'
    )
    tasks_owned = db.relationship(
        'Task', foreign_keys='Task.owner_id', backref='owner', lazy=True,
        order_by='Task.created_at.desc()'
    )
    tasks_assigned = db.relationship(
        'Task', foreign_keys='Task.assignee_id', backref='assignee', lazy=True,
        order_by='Task.created_at.desc()'
    )

    @property
    def is_admin(self):
        return self.role is Role.ADMIN

    def to_dict(self):
        # password_hash is never part of any representation
        return {
            'id': self.id,
            'name': self.name,
            'email': self.email,
            'role': self.role.value,
            'createdAt': _isoformat(self.created_at),
            'updatedAt': _isoformat(self.updated_at)
        }


# ============================================
# 2. Project
# ============================================
class Project(TimestampMixin, db.Model):
    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    owner_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False, index=True)

    tasks = db.relationship(
        'Task', backref='project', lazy=True, cascade='all,delete-orphan',
        order_by='Task.created_at.desc()'
    )

    def to_dict(self, include_owner=False, include_tasks=False):
        data = {
            'id': self.id,
            'title': self.title,
            'description': self.description,
            'ownerId': self.owner_id,
            'createdAt': _isoformat(self.created_at),
            'updatedAt': _isoformat(self.updated_at)
        }
        if include_owner:
            data['owner'] = self.owner.to_dict() if self.owner else None
        if include_tasks:
            data['tasks'] = [task.to_dict() for task in self.tasks]
        return data


# ============================================
# 3. Task
# ============================================
class Task(TimestampMixin, db.Model):
    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    status = db.Column(
        db.Enum(TaskStatus, native_enum=False, length=20, validate_strings=True),
        nullable=False,
        default=TaskStatus.TODO
    )

    project_id = db.Column(db.Integer, db.ForeignKey('project.id'), nullable=False)
    assignee_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=True)
    owner_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False)

    __table_args__ = (
        db.Index('idx_task_project_status', 'project_id', 'status'),
        db.Index('idx_task_assignee_status', 'assignee_id', 'status'),
        db.Index('idx_task_owner', 'owner_id'),
    )

    def to_dict(self, include_project=False, include_assignee=False):
        data = {
            'id': self.id,
            'title': self.title,
            'description': self.description,
            'status': self.status.value,
            'projectId': self.project_id,
            'assigneeId': self.assignee_id,
            'ownerId': self.owner_id,
            'createdAt': _isoformat(self.created_at),
            'updatedAt': _isoformat(self.updated_at)
        }
        if include_project:
            data['project'] = self.project.to_dict() if self.project else None
        if include_assignee:
            data['assignee'] = self.assignee.to_dict() if self.assignee else None
        return data
