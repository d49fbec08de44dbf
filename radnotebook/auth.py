"""
Authentication: bearer tokens, account routes and audit helper
"""
import time
from functools import wraps
from datetime import datetime, timezone

import click
from botocore.exceptions import BotoCoreError, ClientError
from flask import Blueprint, current_app, jsonify, request
from flask_login import current_user, login_required
from itsdangerous import BadData, URLSafeTimedSerializer
from sqlalchemy.exc import IntegrityError

from radnotebook import db, login_manager
from radnotebook.errors import ApiError, Forbidden, NotFound
from radnotebook.forms import PasswordForm, SignupForm
from radnotebook.models import AppRole, AuditLog, Profile, User, UserRole
from radnotebook.services import storage_service
from radnotebook.utils import bearer_token, json_body, sanitize_updates

users_bp = Blueprint('users', __name__)

PROFILE_EDITABLE = ('display_name', 'last_project_id')


# ============ Tokens ============

def _serializer(kind):
    return URLSafeTimedSerializer(current_app.config['SECRET_KEY'], salt=f'radnotebook-{kind}-token')


def issue_tokens(user):
    """Signed access/refresh pair bound to the user's current token epoch"""
    payload = {'sub': user.id, 'epoch': user.token_epoch or 0}
    return {
        'access_token': _serializer('access').dumps(payload),
        'refresh_token': _serializer('refresh').dumps(payload),
        'token_type': 'bearer',
        'expires_at': int(time.time()) + current_app.config['ACCESS_TOKEN_TTL'],
    }


def verify_token(token, kind='access'):
    """Return the user for a valid token, None for bad, expired or revoked ones"""
    if not token:
        return None
    max_age = current_app.config['ACCESS_TOKEN_TTL' if kind == 'access' else 'REFRESH_TOKEN_TTL']
    try:
        payload = _serializer(kind).loads(token, max_age=max_age)
    except BadData:
        return None
    if not isinstance(payload, dict):
        return None
    user = db.session.get(User, payload.get('sub'))
    if user is None or (user.token_epoch or 0) != payload.get('epoch'):
        return None
    return user


@login_manager.user_loader
def load_user(user_id):
    """Load user by ID"""
    return db.session.get(User, user_id)


@login_manager.request_loader
def load_user_from_request(req):
    return verify_token(bearer_token(req))


@login_manager.unauthorized_handler
def unauthorized():
    if bearer_token() is None:
        return jsonify({'error': 'Authorization header required'}), 401
    return jsonify({'error': 'Invalid or expired token'}), 401


def admin_required(f):
    """Decorator to require the admin role (after login_required)"""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not current_user.is_admin:
            raise Forbidden('Admin role required')
        return f(*args, **kwargs)
    return decorated_function


def log_audit_event(action, record, old_data=None):
    """Queue an audit entry for a changed row; committed with the caller's transaction"""
    entry = AuditLog(
        user_id=current_user.id if current_user.is_authenticated else None,
        action=action,
        table_name=record.__tablename__,
        record_id=record.id,
        old_data=old_data,
        new_data=None if action == 'DELETE' else record.to_dict(),
    )
    db.session.add(entry)


# ============ Account Routes ============

def _profile_for(user):
    if user.profile is None:
        user.profile = Profile(display_name=user.email.split('@')[0])
    return user.profile


def _own_user_id(user_id):
    return user_id in ('me', current_user.id)


def _require_strings(payload, fields):
    for field in fields:
        if payload.get(field) is not None and not isinstance(payload[field], str):
            raise ApiError(f'{field} must be a string')


@users_bp.route('/api-users', methods=['POST'])
def signup():
    """Create an account"""
    payload = json_body()
    _require_strings(payload, ('email', 'password', 'display_name'))
    form = SignupForm()
    if not form.validate():
        raise ApiError(form.error_list()[0], details=form.error_list())

    email = form.email.data.strip().lower()
    current_app.logger.info('Creating new user: %s', email)

    if User.query.filter_by(email=email).first():
        raise ApiError('An account with this email already exists')

    user = User(email=email)
    user.set_password(form.password.data)
    user.profile = Profile(display_name=(form.display_name.data or '').strip() or email.split('@')[0])
    db.session.add(user)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        current_app.logger.warning('Signup collision for %s', email)
        raise ApiError('An account with this email already exists')

    current_app.logger.info('User created successfully: %s', user.id)
    return jsonify(user.to_dict()), 201


@users_bp.route('/api-users/login', methods=['POST'])
def login():
    """Exchange email + password for a token pair"""
    payload = json_body()
    email = payload.get('email')
    password = payload.get('password')
    if not isinstance(email, str) or not isinstance(password, str) or not email or not password:
        raise ApiError('Email and password are required')

    email = email.strip().lower()
    current_app.logger.info('Login attempt: %s', email)

    user = User.query.filter_by(email=email).first()
    if user is None or not user.check_password(password):
        return jsonify({'error': 'Invalid credentials'}), 401

    _profile_for(user).last_login_at = datetime.now(timezone.utc)
    db.session.commit()

    current_app.logger.info('Login successful: %s', user.id)
    return jsonify({'user': {'id': user.id, 'email': user.email}, **issue_tokens(user)}), 200


@users_bp.route('/api-users/refresh', methods=['POST'])
def refresh():
    """New token pair from a refresh token"""
    user = verify_token(json_body().get('refresh_token'), kind='refresh')
    if user is None:
        return jsonify({'error': 'Invalid or expired token'}), 401
    return jsonify({'user': {'id': user.id, 'email': user.email}, **issue_tokens(user)}), 200


@users_bp.route('/api-users/logout', methods=['POST'])
@login_required
def logout():
    """Revoke every token issued to the caller"""
    current_user.revoke_tokens()
    db.session.commit()
    current_app.logger.info('User signed out: %s', current_user.id)
    return jsonify({'message': 'Signed out'}), 200


@users_bp.route('/api-users/me', methods=['GET'])
@login_required
def me():
    """Current user profile with email and roles"""
    profile = _profile_for(current_user)
    db.session.commit()
    return jsonify({
        **profile.to_dict(),
        'email': current_user.email,
        'roles': [r.role.value for r in current_user.roles],
    }), 200


@users_bp.route('/api-users/me/password', methods=['PUT'])
@login_required
def change_password():
    _require_strings(json_body(), ('password',))
    form = PasswordForm()
    if not form.validate():
        raise ApiError(form.error_list()[0], details=form.error_list())
    current_user.set_password(form.password.data)
    db.session.commit()
    current_app.logger.info('Password changed for user: %s', current_user.id)
    return jsonify({'message': 'Password changed successfully'}), 200


@users_bp.route('/api-users/me/avatar', methods=['POST'])
@login_required
def upload_avatar():
    file = request.files.get('avatar')
    if not file:
        raise ApiError('No avatar uploaded')
    content_type = (file.mimetype or '').lower()
    if not content_type.startswith('image/'):
        raise ApiError('Please upload an image file')
    data = file.read()
    if len(data) > current_app.config['AVATAR_MAX_BYTES']:
        raise ApiError('Image must be less than 2MB')

    ok, msg = storage_service.aws_ready()
    if not ok:
        current_app.logger.error('Avatar storage not configured: %s', msg)
        raise ApiError('Avatar storage not configured', status_code=500)

    try:
        url = storage_service.upload_avatar(current_user.id, data, file.filename or '', content_type)
    except (BotoCoreError, ClientError):
        current_app.logger.exception('Avatar upload failed for user: %s', current_user.id)
        raise ApiError('Failed to upload avatar', status_code=500)

    profile = _profile_for(current_user)
    profile.avatar_url = url
    db.session.commit()
    return jsonify(profile.to_dict()), 200


@users_bp.route('/api-users/<user_id>', methods=['GET'])
@login_required
def get_user(user_id):
    if user_id != current_user.id:
        raise Forbidden("Cannot access other users' profiles")
    if current_user.profile is None:
        raise NotFound('Profile not found')
    return jsonify(current_user.profile.to_dict()), 200


@users_bp.route('/api-users/<user_id>', methods=['PUT'])
@login_required
def update_user(user_id):
    if not _own_user_id(user_id):
        raise Forbidden("Cannot update other users' profiles")

    # Role changes go through the role assignment routes
    updates = sanitize_updates(json_body(), PROFILE_EDITABLE)
    _require_strings(updates, PROFILE_EDITABLE)
    current_app.logger.info('Updating profile for user: %s %s', current_user.id, updates)

    profile = _profile_for(current_user)
    for field, value in updates.items():
        setattr(profile, field, value)
    db.session.commit()
    return jsonify(profile.to_dict()), 200


@users_bp.route('/api-users/<user_id>', methods=['DELETE'])
@login_required
def delete_user(user_id):
    if not _own_user_id(user_id):
        raise Forbidden('Cannot delete other users')

    current_app.logger.info('Deleting user: %s', current_user.id)
    db.session.delete(db.session.get(User, current_user.id))
    db.session.commit()
    return jsonify({'message': 'User deleted successfully'}), 200


@users_bp.route('/api-users/<user_id>/roles', methods=['POST'])
@login_required
@admin_required
def grant_role(user_id):
    try:
        role = AppRole(json_body().get('role'))
    except ValueError:
        raise ApiError('Invalid role')

    target = db.session.get(User, user_id)
    if target is None:
        raise NotFound('User not found')

    existing = target.roles.filter_by(role=role).first()
    if existing:
        return jsonify(existing.to_dict()), 200

    assignment = UserRole(user_id=target.id, role=role)
    db.session.add(assignment)
    db.session.commit()
    current_app.logger.info('Granted role %s to user %s', role.value, target.id)
    return jsonify(assignment.to_dict()), 201


@users_bp.route('/api-users/<user_id>/roles/<role>', methods=['DELETE'])
@login_required
@admin_required
def revoke_role(user_id, role):
    try:
        role = AppRole(role)
    except ValueError:
        raise ApiError('Invalid role')

    assignment = UserRole.query.filter_by(user_id=user_id, role=role).first()
    if assignment is None:
        raise NotFound('Role not assigned')
    db.session.delete(assignment)
    db.session.commit()
    current_app.logger.info('Revoked role %s from user %s', role.value, user_id)
    return jsonify({'message': 'Role revoked successfully'}), 200


@users_bp.cli.command('grant-role')
@click.argument('email')
@click.argument('role', type=click.Choice([r.value for r in AppRole]))
def grant_role_command(email, role):
    """Assign a role from the command line (bootstraps the first admin)."""
    user = User.query.filter_by(email=email.strip().lower()).first()
    if user is None:
        raise click.ClickException(f'No user with email {email}')
    if not user.has_role(role):
        db.session.add(UserRole(user_id=user.id, role=AppRole(role)))
        db.session.commit()
    click.echo(f'{email} has role {role}')
