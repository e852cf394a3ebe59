import hmac
import logging

from flask import Blueprint, request, jsonify, current_app
from flask_jwt_extended import jwt_required, get_jwt_identity, set_access_cookies, unset_jwt_cookies
from marshmallow import Schema, fields, validate, ValidationError
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import selectinload

import tokens
from errors import AuthenticationError, ConflictError, NotFoundError, RequestValidationError
from extensions import bcrypt, limiter
from models import db, User, Role

auth_bp = Blueprint('auth', __name__)
logger = logging.getLogger(__name__)

INVALID_CREDENTIALS = 'Invalid email or password'


# ============================================
# Input Validation Schemas
# ============================================

class RegisterSchema(Schema):
    """Registration input"""
    name = fields.Str(
        required=True,
        validate=validate.Length(min=2, error='Name is too short'),
        error_messages={'required': 'Name is required'}
    )
    email = fields.Email(required=True, error_messages={
        'required': 'Email is required',
        'invalid': 'Invalid email address'
    })
    password = fields.Str(
        required=True,
        validate=validate.Length(min=6, max=128, error='Password must be at least 6 characters'),
        error_messages={'required': 'Password is required'}
    )
    admin_key = fields.Str(data_key='adminKey', load_default=None)


class LoginSchema(Schema):
    """Login input"""
    email = fields.Str(required=True, validate=validate.Length(min=1))
    password = fields.Str(required=True, validate=validate.Length(min=1))


# ============================================
# Helper Functions (shared with the other blueprints)
# ============================================

def validate_request_data(schema, data=None):
    """
    Load the JSON body through a marshmallow schema

    Raises:
        RequestValidationError: body missing/not JSON, or per-field errors
    """
    if data is None:
        data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise RequestValidationError('Request body must be a JSON object')
    try:
        return schema.load(data)
    except ValidationError as err:
        raise RequestValidationError('Validation failed', errors=err.messages)


def hash_password(password):
    return bcrypt.generate_password_hash(password).decode('utf-8')


def get_current_user():
    """
    Resolve the caller from the token already checked by jwt_required

    Returns None when the token's user no longer exists.
    """
    user_id = get_jwt_identity()
    if not user_id:
        return None
    try:
        return db.session.get(User, int(user_id))
    except (TypeError, ValueError):
        logger.warning(f"Token carried a non-numeric identity: {user_id!r}")
        return None


def require_current_user():
    current_user = get_current_user()
    if not current_user:
        raise AuthenticationError('Authentication required')
    return current_user


def is_shared_workspace():
    return bool(current_app.config.get('SHARED_WORKSPACE'))


def _is_admin_key(candidate):
    admin_key = current_app.config.get('ADMIN_KEY')
    if not admin_key or not candidate:
        return False
    return hmac.compare_digest(candidate.encode('utf-8'), admin_key.encode('utf-8'))


def _auth_response(user, message, status):
    token = tokens.issue(user.id)
    response = jsonify({
        'message': message,
        'user': user.to_dict(),
        'token': token
    })
    # Cookie lives exactly as long as the token inside it
    lifetime = current_app.config['JWT_ACCESS_TOKEN_EXPIRES']
    set_access_cookies(response, token, max_age=int(lifetime.total_seconds()))
    return response, status


# ============================================
# Register
# ============================================

@auth_bp.route('/register', methods=['POST'])
@limiter.limit("5 per hour")
def register():
    """
    Create an account

    A correct `adminKey` in the body creates the account as ADMIN.
    """
    result = validate_request_data(RegisterSchema())

    if User.query.filter_by(email=result['email']).first():
        raise ConflictError('User already exists')

    role = Role.ADMIN if _is_admin_key(result.get('admin_key')) else Role.USER

    user = User(
        name=result['name'],
        email=result['email'],
        password_hash=hash_password(result['password']),
        role=role
    )

    try:
        db.session.add(user)
        db.session.commit()
    except IntegrityError:
        # Lost a race with a concurrent registration for the same email
        db.session.rollback()
        raise ConflictError('User already exists')

    logger.info(f"New user registered: {user.email} ({role.value})")
    return _auth_response(user, 'Registration successful', 201)


# ============================================
# Login
# ============================================

@auth_bp.route('/login', methods=['POST'])
@limiter.limit("10 per minute")
def login():
    """
    Log in and receive the session cookie

    Unknown email and wrong password get the same 401 so accounts cannot
    be enumerated.
    """
    result = validate_request_data(LoginSchema())

    user = User.query.filter_by(email=result['email']).first()

    if not user or not bcrypt.check_password_hash(user.password_hash, result['password']):
        logger.warning(f"Failed login attempt for email: {result['email']}")
        raise AuthenticationError(INVALID_CREDENTIALS)

    logger.info(f"User logged in: {user.email}")
    return _auth_response(user, 'Login successful', 200)


@auth_bp.route('/logout', methods=['POST'])
def logout():
    """Drop the session cookie. Tokens are not revoked server-side."""
    response = jsonify({'message': 'Logout successful'})
    unset_jwt_cookies(response)
    return response, 200


# ============================================
# Current user
# ============================================

@auth_bp.route('/me', methods=['GET'])
@jwt_required()
def get_me():
    """The caller with owned projects and owned/assigned tasks, in one read"""
    user_id = get_jwt_identity()
    try:
        user = db.session.get(
            User,
            int(user_id),
            options=[
                selectinload(User.projects),
                selectinload(User.tasks_owned),
                selectinload(User.tasks_assigned)
            ]
        )
    except (TypeError, ValueError):
        user = None

    if not user:
        logger.warning(f"Token valid but user not found: {user_id}")
        raise NotFoundError('User not found')

    owned = [task.to_dict() for task in user.tasks_owned]
    assigned = [task.to_dict() for task in user.tasks_assigned]

    # Union of both lists, newest first
    merged = {task['id']: task for task in owned + assigned}
    tasks = sorted(merged.values(), key=lambda t: t['createdAt'], reverse=True)

    data = user.to_dict()
    data.update({
        'projects': [project.to_dict() for project in user.projects],
        'ownedTasks': owned,
        'assignedTasks': assigned,
        'tasks': tasks
    })
    return jsonify({'user': data}), 200
