from flask import Blueprint, jsonify
from flask_jwt_extended import jwt_required
from marshmallow import Schema, fields, validate
from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from models import db, User, Task, Project, Role, is_valid_id
from auth import validate_request_data, require_current_user, hash_password
from errors import AuthorizationError, ConflictError, DependencyError, NotFoundError
import logging

users_bp = Blueprint('users', __name__)
logger = logging.getLogger(__name__)

# ============================================
# Input Validation Schemas
# ============================================

class UpdateUserSchema(Schema):
    """Profile update input (all fields optional)"""
    name = fields.Str(validate=validate.Length(min=2, max=100))
    email = fields.Email()
    password = fields.Str(validate=validate.Length(min=6, max=128))
    role = fields.Enum(Role)

# ============================================
# Helper Functions
# ============================================

def get_user_or_404(user_id):
    if not is_valid_id(user_id):
        raise NotFoundError('User not found')
    user = db.session.get(User, user_id)
    if not user:
        raise NotFoundError('User not found')
    return user

def ensure_self_or_admin(current_user, user):
    if current_user.role is Role.ADMIN:
        return
    if current_user.role is Role.USER and current_user.id == user.id:
        return
    raise AuthorizationError('You can only manage your own account')

# ============================================
# List / Get
# ============================================

@users_bp.route('', methods=['GET'])
@jwt_required()
def list_users():
    """Team members, newest first (no password data)"""
    users = User.query.order_by(User.created_at.desc(), User.id.desc()).all()
    return jsonify({
        'users': [user.to_dict() for user in users],
        'message': 'Users fetched successfully'
    }), 200

@users_bp.route('/<int:user_id>', methods=['GET'])
@jwt_required()
def get_user(user_id):
    user = get_user_or_404(user_id)
    return jsonify({
        'user': user.to_dict(),
        'message': 'User fetched successfully'
    }), 200

# ============================================
# Update
# ============================================

@users_bp.route('/<int:user_id>', methods=['PUT'])
@jwt_required()
def update_user(user_id):
    """
    Update name, email, password or role

    Users manage their own profile; only an ADMIN may change roles.
    """
    current_user = require_current_user()
    user = get_user_or_404(user_id)
    ensure_self_or_admin(current_user, user)

    result = validate_request_data(UpdateUserSchema())

    if 'role' in result and result['role'] is not user.role and current_user.role is not Role.ADMIN:
        raise AuthorizationError('Only an admin can change roles')

    if 'email' in result and result['email'] != user.email:
        if User.query.filter_by(email=result['email']).first():
            raise ConflictError('Email already taken')

    for field in ['name', 'email', 'role']:
        if field in result:
            setattr(user, field, result[field])
    if 'password' in result:
        user.password_hash = hash_password(result['password'])
    user.touch()

    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError('Email already taken')

    logger.info(f"User {user_id} updated by user {current_user.email}")
    return jsonify({
        'user': user.to_dict(),
        'message': 'User updated successfully'
    }), 200

# ============================================
# Delete
# ============================================

@users_bp.route('/<int:user_id>', methods=['DELETE'])
@jwt_required()
def delete_user(user_id):
    """
    Delete an account

    Refused while any task references the user (as assignee or owner) or
    the user still owns projects.
    """
    current_user = require_current_user()
    user = get_user_or_404(user_id)
    ensure_self_or_admin(current_user, user)

    task_refs = Task.query.filter(
        or_(Task.assignee_id == user_id, Task.owner_id == user_id)
    ).count()
    if task_refs:
        raise DependencyError('Cannot delete user with assigned tasks. Please reassign tasks first.')

    if Project.query.filter_by(owner_id=user_id).count():
        raise DependencyError('Cannot delete user who still owns projects. Please delete or transfer them first.')

    db.session.delete(user)
    db.session.commit()

    logger.info(f"User {user_id} deleted by user {current_user.email}")
    return jsonify({'message': 'User deleted successfully'}), 200
