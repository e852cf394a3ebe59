"""
Screen data for the dashboard, board, calendar and reports pages

Each `*_snapshot` / `completion_report` function is pure: it takes task and
project dicts (the same shape the API returns) and builds a frozen
snapshot. The blueprint below only loads rows and hands them over, so the
Python client can build the same snapshots from data it already holds.
"""
import calendar
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta

from flask import Blueprint, request, jsonify
from flask_jwt_extended import jwt_required
from sqlalchemy import or_
from sqlalchemy.orm import selectinload

from auth import require_current_user
from errors import RequestValidationError
from models import Project, Task, TaskStatus, is_valid_id

views_bp = Blueprint('views', __name__)
logger = logging.getLogger(__name__)

BOARD_COLUMNS = (TaskStatus.TODO.value, TaskStatus.IN_PROGRESS.value, TaskStatus.DONE.value)
REPORT_RANGES = {'all': None, 'week': timedelta(days=7), 'month': timedelta(days=30)}
TOP_PERFORMERS = 5


def _parse_timestamp(value):
    return datetime.fromisoformat(value)


# ============================================
# Snapshots
# ============================================

@dataclass(frozen=True)
class DashboardSnapshot:
    projects: tuple
    total_projects: int
    total_tasks: int
    completed_tasks: int

    def to_dict(self):
        return {
            'projects': list(self.projects),
            'totalProjects': self.total_projects,
            'totalTasks': self.total_tasks,
            'completedTasks': self.completed_tasks
        }


@dataclass(frozen=True)
class BoardColumn:
    status: str
    tasks: tuple

    @property
    def count(self):
        return len(self.tasks)


@dataclass(frozen=True)
class BoardSnapshot:
    columns: tuple

    def column(self, status):
        for column in self.columns:
            if column.status == status:
                return column
        raise KeyError(status)

    @property
    def counts(self):
        counts = {'ALL': sum(column.count for column in self.columns)}
        counts.update({column.status: column.count for column in self.columns})
        return counts

    def to_dict(self):
        return {
            'columns': [
                {'status': column.status, 'count': column.count, 'tasks': list(column.tasks)}
                for column in self.columns
            ],
            'counts': self.counts
        }


@dataclass(frozen=True)
class CalendarSnapshot:
    year: int
    month: int
    days: tuple  # ((iso date, (task, ...)), ...) only for days with tasks

    def tasks_on(self, day):
        key = day.isoformat()
        for date_key, tasks in self.days:
            if date_key == key:
                return tasks
        return ()

    def to_dict(self):
        return {
            'year': self.year,
            'month': self.month,
            'days': {date_key: list(tasks) for date_key, tasks in self.days}
        }


@dataclass(frozen=True)
class CompletionReport:
    range_name: str
    tasks: tuple
    total_tasks: int
    completed_this_week: int
    avg_completion_days: int
    top_performers: tuple

    def to_dict(self):
        return {
            'range': self.range_name,
            'tasks': list(self.tasks),
            'totalTasks': self.total_tasks,
            'completedThisWeek': self.completed_this_week,
            'avgCompletionDays': self.avg_completion_days,
            'topPerformers': list(self.top_performers)
        }


def dashboard_snapshot(projects):
    """Projects (with their tasks) plus headline counts"""
    projects = tuple(projects)
    total_tasks = sum(len(project.get('tasks') or []) for project in projects)
    completed = sum(
        1
        for project in projects
        for task in (project.get('tasks') or [])
        if task['status'] == TaskStatus.DONE.value
    )
    return DashboardSnapshot(
        projects=projects,
        total_projects=len(projects),
        total_tasks=total_tasks,
        completed_tasks=completed
    )


def board_snapshot(tasks, search=None):
    """Group tasks into the kanban columns, optionally filtered by a search term"""
    if search:
        term = search.lower()
        tasks = [
            task for task in tasks
            if term in task['title'].lower() or term in (task.get('description') or '').lower()
        ]
    return BoardSnapshot(columns=tuple(
        BoardColumn(status=status, tasks=tuple(task for task in tasks if task['status'] == status))
        for status in BOARD_COLUMNS
    ))


def calendar_snapshot(tasks, year, month):
    """Tasks of one month keyed by their creation day"""
    if not 1 <= month <= 12:
        raise ValueError(f"month must be 1-12, got {month}")

    by_day = {}
    for task in tasks:
        created = _parse_timestamp(task['createdAt'])
        if created.year == year and created.month == month:
            by_day.setdefault(created.date().isoformat(), []).append(task)

    days = tuple((key, tuple(by_day[key])) for key in sorted(by_day))
    return CalendarSnapshot(year=year, month=month, days=days)


def completion_report(tasks, now=None, range_name='all'):
    """
    Statistics over DONE tasks

    Completion time is updatedAt - createdAt: the last transition time, so a
    task that bounced between states only reflects its final move.
    """
    if range_name not in REPORT_RANGES:
        raise ValueError(f"unknown report range: {range_name}")
    now = now or datetime.utcnow()

    done = [task for task in tasks if task['status'] == TaskStatus.DONE.value]
    window = REPORT_RANGES[range_name]
    if window is not None:
        done = [task for task in done if _parse_timestamp(task['updatedAt']) >= now - window]

    week_ago = now - timedelta(days=7)
    completed_this_week = sum(1 for task in done if _parse_timestamp(task['updatedAt']) >= week_ago)

    durations = [
        (_parse_timestamp(task['updatedAt']) - _parse_timestamp(task['createdAt'])).total_seconds()
        for task in done
    ]
    avg_seconds = sum(durations) / (len(durations) or 1)
    avg_days = round(avg_seconds / 86400)

    performers = {}
    for task in done:
        assignee = task.get('assignee')
        if not assignee:
            continue
        entry = performers.setdefault(assignee['id'], dict(assignee, taskCount=0))
        entry['taskCount'] += 1
    top = sorted(performers.values(), key=lambda p: p['taskCount'], reverse=True)[:TOP_PERFORMERS]

    return CompletionReport(
        range_name=range_name,
        tasks=tuple(done),
        total_tasks=len(done),
        completed_this_week=completed_this_week,
        avg_completion_days=avg_days,
        top_performers=tuple(top)
    )


# ============================================
# Loaders
# ============================================

def _my_tasks(user, project_id=None):
    query = Task.query.options(
        selectinload(Task.project),
        selectinload(Task.assignee)
    ).filter(or_(Task.owner_id == user.id, Task.assignee_id == user.id))
    if project_id is not None:
        query = query.filter(Task.project_id == project_id)
    tasks = query.order_by(Task.created_at.desc(), Task.id.desc()).all()
    return [task.to_dict(include_project=True, include_assignee=True) for task in tasks]


def _int_arg(name, default=None):
    value = request.args.get(name)
    if value is None or value == '':
        return default
    try:
        return int(value)
    except ValueError:
        raise RequestValidationError('Validation failed', errors={name: ['Not a valid integer.']})


def _id_arg(name):
    value = _int_arg(name)
    if value is not None and not is_valid_id(value):
        raise RequestValidationError('Validation failed', errors={name: ['Not a valid id.']})
    return value


# ============================================
# Routes
# ============================================

@views_bp.route('/dashboard', methods=['GET'])
@jwt_required()
def dashboard():
    require_current_user()
    projects = Project.query.options(
        selectinload(Project.tasks)
    ).order_by(Project.created_at.desc(), Project.id.desc()).all()
    snapshot = dashboard_snapshot(project.to_dict(include_tasks=True) for project in projects)
    return jsonify(snapshot.to_dict()), 200


@views_bp.route('/board', methods=['GET'])
@jwt_required()
def board():
    """The caller's tasks (owned or assigned) as kanban columns"""
    current_user = require_current_user()
    tasks = _my_tasks(current_user, project_id=_id_arg('projectId'))
    snapshot = board_snapshot(tasks, search=request.args.get('search'))
    return jsonify(snapshot.to_dict()), 200


@views_bp.route('/calendar', methods=['GET'])
@jwt_required()
def calendar_view():
    current_user = require_current_user()
    today = datetime.utcnow()
    year = _int_arg('year', today.year)
    month = _int_arg('month', today.month)
    if not 1 <= month <= 12:
        raise RequestValidationError('Validation failed', errors={'month': ['Must be between 1 and 12.']})
    if not 1 <= year <= 9999:
        raise RequestValidationError('Validation failed', errors={'year': ['Must be between 1 and 9999.']})

    snapshot = calendar_snapshot(_my_tasks(current_user), year, month)
    data = snapshot.to_dict()
    data['daysInMonth'] = calendar.monthrange(year, month)[1]
    return jsonify(data), 200


@views_bp.route('/reports', methods=['GET'])
@jwt_required()
def reports():
    """Completion statistics over all DONE tasks"""
    require_current_user()
    range_name = request.args.get('range', 'all')
    if range_name not in REPORT_RANGES:
        raise RequestValidationError(
            'Validation failed',
            errors={'range': [f"Must be one of: {', '.join(REPORT_RANGES)}."]}
        )

    tasks = Task.query.options(selectinload(Task.assignee)).filter(
        Task.status == TaskStatus.DONE
    ).order_by(Task.updated_at.desc()).all()
    report = completion_report(
        [task.to_dict(include_assignee=True) for task in tasks],
        range_name=range_name
    )
    return jsonify(report.to_dict()), 200
