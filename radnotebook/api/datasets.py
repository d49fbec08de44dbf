"""
Datasets API

POST   /api-datasets?project_id=   create
GET    /api-datasets?project_id=   list for a project (oldest first)
PUT    /api-datasets/<id>          update name / description
DELETE /api-datasets/<id>          delete
"""
from flask import Blueprint, current_app, jsonify, request
from flask_login import login_required

from radnotebook import db
from radnotebook.api import access
from radnotebook.auth import log_audit_event
from radnotebook.errors import ApiError
from radnotebook.models import Dataset
from radnotebook.utils import json_body, sanitize_updates, text_fields_ok

datasets_bp = Blueprint('datasets', __name__)


@datasets_bp.route('/api-datasets', methods=['POST'])
@login_required
def create_dataset():
    payload = json_body()
    project_id = payload.get('project_id') or request.args.get('project_id')
    if not project_id:
        raise ApiError('project_id is required')

    project = access.get_project(project_id)
    if project is None or not text_fields_ok(payload, ('name', 'description')):
        raise ApiError('Failed to create dataset')

    dataset = Dataset(
        project_id=project.id,
        name=payload.get('name') or 'Untitled Dataset',
        description=payload.get('description') or None,
    )
    db.session.add(dataset)
    db.session.flush()
    log_audit_event('INSERT', dataset)
    db.session.commit()

    current_app.logger.info('Dataset created: %s', dataset.id)
    return jsonify(dataset.to_dict()), 201


@datasets_bp.route('/api-datasets', methods=['GET'])
@login_required
def list_datasets():
    project_id = request.args.get('project_id')
    if not project_id:
        raise ApiError('project_id query parameter is required')

    datasets = (
        access.visible_datasets()
        .filter(Dataset.project_id == project_id)
        .order_by(Dataset.created_at.asc())
        .all()
    )
    return jsonify({'datasets': [d.to_dict() for d in datasets], 'count': len(datasets)}), 200


@datasets_bp.route('/api-datasets/<dataset_id>', methods=['PUT'])
@login_required
def update_dataset(dataset_id):
    updates = sanitize_updates(json_body(), Dataset.EDITABLE)
    dataset = access.get_dataset(dataset_id)
    if dataset is None or not text_fields_ok(updates, ('name', 'description'), required=('name',)):
        raise ApiError('Failed to update dataset')

    old_data = dataset.to_dict()
    for field, value in updates.items():
        setattr(dataset, field, value)
    db.session.flush()
    log_audit_event('UPDATE', dataset, old_data=old_data)
    db.session.commit()
    return jsonify(dataset.to_dict()), 200


@datasets_bp.route('/api-datasets/<dataset_id>', methods=['DELETE'])
@login_required
def delete_dataset(dataset_id):
    dataset = access.get_dataset(dataset_id)
    if dataset is None:
        raise ApiError('Failed to delete dataset')

    log_audit_event('DELETE', dataset, old_data=dataset.to_dict())
    db.session.delete(dataset)
    db.session.commit()
    return jsonify({'message': 'Dataset deleted successfully'}), 200
