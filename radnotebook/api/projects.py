"""
Projects API

POST   /api-projects        create
GET    /api-projects        list (newest first)
GET    /api-projects/<id>   project with analyses and datasets
PUT    /api-projects/<id>   update name / description / is_public
DELETE /api-projects/<id>   delete (cascades to analyses, sections, datasets)
"""
from flask import Blueprint, current_app, jsonify
from flask_login import current_user, login_required

from radnotebook import db
from radnotebook.api import access
from radnotebook.auth import log_audit_event
from radnotebook.errors import ApiError, NotFound
from radnotebook.models import Analysis, Dataset, Project
from radnotebook.utils import json_body, sanitize_updates, text_fields_ok

projects_bp = Blueprint('projects', __name__)


@projects_bp.route('/api-projects', methods=['POST'])
@login_required
def create_project():
    payload = json_body()
    current_app.logger.info('Creating project for user: %s', current_user.id)
    if not text_fields_ok(payload, ('name', 'description')):
        raise ApiError('Failed to create project')

    project = Project(
        user_id=current_user.id,
        name=payload.get('name') or 'Untitled Project',
        description=payload.get('description') or None,
    )
    db.session.add(project)
    db.session.flush()
    log_audit_event('INSERT', project)
    db.session.commit()

    current_app.logger.info('Project created: %s', project.id)
    return jsonify(project.to_dict()), 201


@projects_bp.route('/api-projects', methods=['GET'])
@login_required
def list_projects():
    current_app.logger.info('Fetching projects for user: %s', current_user.id)
    projects = access.visible_projects().order_by(Project.created_at.desc()).all()
    return jsonify({'projects': [p.to_dict() for p in projects], 'count': len(projects)}), 200


@projects_bp.route('/api-projects/<project_id>', methods=['GET'])
@login_required
def get_project(project_id):
    project = access.get_project(project_id)
    if project is None:
        raise NotFound('Project not found')

    analyses = project.analyses.order_by(Analysis.created_at.asc()).all()
    datasets = project.datasets.order_by(Dataset.created_at.asc()).all()
    return jsonify({
        **project.to_dict(),
        'analyses': [a.to_dict() for a in analyses],
        'datasets': [d.to_dict() for d in datasets],
    }), 200


@projects_bp.route('/api-projects/<project_id>', methods=['PUT'])
@login_required
def update_project(project_id):
    updates = sanitize_updates(json_body(), Project.EDITABLE)
    current_app.logger.info('Updating project: %s %s', project_id, updates)

    project = access.get_project(project_id)
    if project is None:
        raise ApiError('Failed to update project')
    if not text_fields_ok(updates, ('name', 'description'), required=('name',)):
        raise ApiError('Failed to update project')
    if 'is_public' in updates and not isinstance(updates['is_public'], bool):
        raise ApiError('Failed to update project')

    old_data = project.to_dict()
    for field, value in updates.items():
        setattr(project, field, value)
    db.session.flush()
    log_audit_event('UPDATE', project, old_data=old_data)
    db.session.commit()
    return jsonify(project.to_dict()), 200


@projects_bp.route('/api-projects/<project_id>', methods=['DELETE'])
@login_required
def delete_project(project_id):
    current_app.logger.info('Deleting project: %s', project_id)

    project = access.get_project(project_id)
    if project is None:
        raise ApiError('Failed to delete project')

    log_audit_event('DELETE', project, old_data=project.to_dict())
    db.session.delete(project)
    db.session.commit()
    return jsonify({'message': 'Project deleted successfully'}), 200
