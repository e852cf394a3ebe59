from flask import Blueprint, request, jsonify
from flask_jwt_extended import jwt_required
from sqlalchemy.orm import selectinload
from marshmallow import Schema, fields, validate
from models import db, Task, Project, User, TaskStatus, Role, MAX_ID, is_valid_id
from auth import validate_request_data, require_current_user, is_shared_workspace
from errors import AuthorizationError, NotFoundError, RequestValidationError
import logging

tasks_bp = Blueprint('tasks', __name__)
logger = logging.getLogger(__name__)

STATUS_VALUES = [status.value for status in TaskStatus]

# ============================================
# Input Validation Schemas
# ============================================

class CreateTaskSchema(Schema):
    """Task creation input"""
    title = fields.Str(
        required=True,
        validate=validate.Length(min=3, max=255, error='Task title is too short'),
        error_messages={'required': 'Task title is required'}
    )
    description = fields.Str(allow_none=True, validate=validate.Length(max=5000))
    status = fields.Enum(TaskStatus, load_default=TaskStatus.TODO)
    project_id = fields.Int(
        required=True,
        data_key='projectId',
        strict=True,
        validate=validate.Range(min=1, max=MAX_ID),
        error_messages={'required': 'projectId is required'}
    )
    assignee_id = fields.Int(
        data_key='assigneeId',
        allow_none=True,
        strict=True,
        validate=validate.Range(min=1, max=MAX_ID)
    )

class UpdateTaskSchema(Schema):
    """Task update input (all fields optional)"""
    title = fields.Str(validate=validate.Length(min=3, max=255))
    description = fields.Str(allow_none=True, validate=validate.Length(max=5000))
    status = fields.Enum(TaskStatus)
    assignee_id = fields.Int(
        data_key='assigneeId',
        allow_none=True,
        strict=True,
        validate=validate.Range(min=1, max=MAX_ID)
    )

# ============================================
# Helper Functions
# ============================================

def get_task_or_404(task_id):
    if not is_valid_id(task_id):
        raise NotFoundError('Task not found')
    task = db.session.get(Task, task_id)
    if not task:
        raise NotFoundError('Task not found')
    return task

def ensure_user_exists(user_id):
    if user_id is not None and not db.session.get(User, user_id):
        raise NotFoundError('Assignee not found')

def can_update_task(user, task):
    """
    Task owner, assignee, project owner or ADMIN may update a task

    The assignee is included so people can move their own work on the board.
    """
    if is_shared_workspace():
        return True
    if user.role is Role.ADMIN:
        return True
    if user.role is Role.USER:
        return user.id in (task.owner_id, task.assignee_id, task.project.owner_id)
    return False

def can_delete_task(user, task):
    """Task owner, project owner or ADMIN may delete a task"""
    if is_shared_workspace():
        return True
    if user.role is Role.ADMIN:
        return True
    if user.role is Role.USER:
        return user.id in (task.owner_id, task.project.owner_id)
    return False

def parse_int_arg(name):
    value = request.args.get(name)
    if value is None or value == '':
        return None
    try:
        number = int(value)
    except ValueError:
        raise RequestValidationError('Validation failed', errors={name: ['Not a valid integer.']})
    if not is_valid_id(number):
        raise RequestValidationError('Validation failed', errors={name: [f'Must be between 1 and {MAX_ID}.']})
    return number

# ============================================
# List / Get (public)
# ============================================

@tasks_bp.route('', methods=['GET'])
def list_tasks():
    """
    All tasks, newest first, with project and assignee

    Optional filters: status, projectId, assigneeId
    """
    query = Task.query.options(
        selectinload(Task.project),
        selectinload(Task.assignee)
    )

    status = request.args.get('status')
    if status:
        if status not in STATUS_VALUES:
            raise RequestValidationError(
                'Validation failed',
                errors={'status': [f"Must be one of: {', '.join(STATUS_VALUES)}."]}
            )
        query = query.filter(Task.status == TaskStatus(status))

    project_id = parse_int_arg('projectId')
    if project_id is not None:
        query = query.filter(Task.project_id == project_id)

    assignee_id = parse_int_arg('assigneeId')
    if assignee_id is not None:
        query = query.filter(Task.assignee_id == assignee_id)

    tasks = query.order_by(Task.created_at.desc(), Task.id.desc()).all()

    return jsonify([
        task.to_dict(include_project=True, include_assignee=True) for task in tasks
    ]), 200

@tasks_bp.route('/<int:task_id>', methods=['GET'])
def get_task(task_id):
    task = get_task_or_404(task_id)
    return jsonify(task.to_dict(include_project=True, include_assignee=True)), 200

# ============================================
# Create
# ============================================

@tasks_bp.route('', methods=['POST'])
@jwt_required()
def create_task():
    """
    Create a task in an existing project

    The caller becomes the task owner. Project and assignee are checked
    before insert so a dangling id is a 404, not a store error.
    """
    current_user = require_current_user()
    result = validate_request_data(CreateTaskSchema())

    if not db.session.get(Project, result['project_id']):
        raise NotFoundError('Project not found')
    ensure_user_exists(result.get('assignee_id'))

    task = Task(
        title=result['title'],
        description=result.get('description'),
        status=result['status'],
        project_id=result['project_id'],
        assignee_id=result.get('assignee_id'),
        owner_id=current_user.id
    )
    db.session.add(task)
    db.session.commit()

    logger.info(f"Task created: {task.title} in project {task.project_id} by user {current_user.email}")
    return jsonify(task.to_dict()), 201

# ============================================
# Update
# ============================================

@tasks_bp.route('/<int:task_id>', methods=['PUT'])
@jwt_required()
def update_task(task_id):
    """
    Update a task

    Status transitions are unrestricted (DONE -> TODO is fine). Every
    update moves updatedAt forward.
    """
    current_user = require_current_user()
    task = get_task_or_404(task_id)

    if not can_update_task(current_user, task):
        logger.warning(f"User {current_user.id} denied updating task {task_id}")
        raise AuthorizationError('Only the task owner, assignee, project owner or an admin can update this task')

    result = validate_request_data(UpdateTaskSchema())

    if 'assignee_id' in result:
        ensure_user_exists(result['assignee_id'])

    old_status = task.status
    for field in ['title', 'description', 'status', 'assignee_id']:
        if field in result:
            setattr(task, field, result[field])
    task.touch()
    db.session.commit()

    if task.status is not old_status:
        logger.info(f"Task {task_id} status {old_status.value} -> {task.status.value} by user {current_user.email}")
    else:
        logger.info(f"Task {task_id} updated by user {current_user.email}")

    return jsonify(task.to_dict()), 200

# ============================================
# Delete
# ============================================

@tasks_bp.route('/<int:task_id>', methods=['DELETE'])
@jwt_required()
def delete_task(task_id):
    current_user = require_current_user()
    task = get_task_or_404(task_id)

    if not can_delete_task(current_user, task):
        logger.warning(f"User {current_user.id} denied deleting task {task_id}")
        raise AuthorizationError('Only the task owner, project owner or an admin can delete this task')

    db.session.delete(task)
    db.session.commit()

    logger.info(f"Task {task_id} deleted by user {current_user.email}")
    return jsonify({'message': 'Task deleted'}), 200
