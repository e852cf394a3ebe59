from flask import Blueprint, jsonify
from flask_jwt_extended import jwt_required
from sqlalchemy.orm import selectinload
from marshmallow import Schema, fields, validate
from models import db, Project, Role, is_valid_id
from auth import validate_request_data, require_current_user, is_shared_workspace
from errors import AuthorizationError, NotFoundError
import logging

projects_bp = Blueprint('projects', __name__)
logger = logging.getLogger(__name__)

# ============================================
# Input Validation Schemas
# ============================================

class CreateProjectSchema(Schema):
    """Project creation input"""
    title = fields.Str(
        required=True,
        validate=validate.Length(min=3, max=255, error='Project title is too short'),
        error_messages={'required': 'Project title is required'}
    )
    description = fields.Str(allow_none=True, validate=validate.Length(max=5000))

class UpdateProjectSchema(Schema):
    """Project update input (all fields optional)"""
    title = fields.Str(validate=validate.Length(min=3, max=255))
    description = fields.Str(allow_none=True, validate=validate.Length(max=5000))

# ============================================
# Helper Functions
# ============================================

def get_project_or_404(project_id, with_tasks=False):
    if not is_valid_id(project_id):
        raise NotFoundError('Project not found')
    query = Project.query
    if with_tasks:
        query = query.options(selectinload(Project.tasks), selectinload(Project.owner))
    project = query.filter_by(id=project_id).first()
    if not project:
        raise NotFoundError('Project not found')
    return project

def can_modify_project(user, project):
    """
    Owner or ADMIN may modify a project

    In shared-workspace mode every authenticated user may.
    """
    if is_shared_workspace():
        return True
    if user.role is Role.ADMIN:
        return True
    if user.role is Role.USER:
        return project.owner_id == user.id
    return False

def ensure_can_modify_project(user, project):
    if not can_modify_project(user, project):
        logger.warning(f"User {user.id} denied modifying project {project.id}")
        raise AuthorizationError('Only the project owner or an admin can modify this project')

# ============================================
# List / Get (public)
# ============================================

@projects_bp.route('', methods=['GET'])
def list_projects():
    """All projects, newest first, with owner and tasks"""
    projects = Project.query.options(
        selectinload(Project.owner),
        selectinload(Project.tasks)
    ).order_by(Project.created_at.desc(), Project.id.desc()).all()

    return jsonify([
        project.to_dict(include_owner=True, include_tasks=True) for project in projects
    ]), 200

@projects_bp.route('/<int:project_id>', methods=['GET'])
def get_project(project_id):
    project = get_project_or_404(project_id, with_tasks=True)
    return jsonify(project.to_dict(include_owner=True, include_tasks=True)), 200

# ============================================
# Create
# ============================================

@projects_bp.route('', methods=['POST'])
@jwt_required()
def create_project():
    """Create a project owned by the caller"""
    current_user = require_current_user()
    result = validate_request_data(CreateProjectSchema())

    project = Project(
        title=result['title'],
        description=result.get('description'),
        owner_id=current_user.id
    )
    db.session.add(project)
    db.session.commit()

    logger.info(f"Project created: {project.title} by user {current_user.email}")
    return jsonify(project.to_dict()), 201

# ============================================
# Update
# ============================================

@projects_bp.route('/<int:project_id>', methods=['PUT'])
@jwt_required()
def update_project(project_id):
    current_user = require_current_user()
    project = get_project_or_404(project_id)
    ensure_can_modify_project(current_user, project)

    result = validate_request_data(UpdateProjectSchema())
    for field in ['title', 'description']:
        if field in result:
            setattr(project, field, result[field])
    project.touch()
    db.session.commit()

    logger.info(f"Project {project_id} updated by user {current_user.email}")
    return jsonify(project.to_dict()), 200

# ============================================
# Delete
# ============================================

@projects_bp.route('/<int:project_id>', methods=['DELETE'])
@jwt_required()
def delete_project(project_id):
    """Delete a project together with its tasks"""
    current_user = require_current_user()
    project = get_project_or_404(project_id)
    ensure_can_modify_project(current_user, project)

    task_count = len(project.tasks)
    db.session.delete(project)
    db.session.commit()

    logger.info(f"Project {project_id} deleted ({task_count} tasks) by user {current_user.email}")
    return jsonify({'message': 'Project deleted'}), 200
