"""
Analyses API

POST   /api-analyses?project_id=   create (project_id in body or query)
GET    /api-analyses?project_id=   list for a project (oldest first)
GET    /api-analyses/<id>          analysis with its ordered sections
PUT    /api-analyses/<id>          update name / labels
DELETE /api-analyses/<id>          delete (cascades to sections)
"""
from flask import Blueprint, current_app, jsonify, request
from flask_login import login_required

from radnotebook import db
from radnotebook.api import access
from radnotebook.auth import log_audit_event
from radnotebook.errors import ApiError, NotFound
from radnotebook.models import Analysis, Section
from radnotebook.utils import json_body, sanitize_updates, text_fields_ok

analyses_bp = Blueprint('analyses', __name__)


def _valid_labels(labels):
    return labels is None or (isinstance(labels, list) and all(isinstance(x, str) for x in labels))


@analyses_bp.route('/api-analyses', methods=['POST'])
@login_required
def create_analysis():
    payload = json_body()
    project_id = payload.get('project_id') or request.args.get('project_id')
    if not project_id:
        raise ApiError('project_id is required')

    current_app.logger.info('Creating analysis for project: %s', project_id)

    project = access.get_project(project_id)
    valid = _valid_labels(payload.get('labels')) and text_fields_ok(payload, ('name',))
    if project is None or not valid:
        current_app.logger.warning('Analysis creation rejected for project: %s', project_id)
        raise ApiError('Failed to create analysis')

    analysis = Analysis(
        project_id=project.id,
        name=payload.get('name') or 'New Analysis',
        labels=payload.get('labels') or [],
    )
    db.session.add(analysis)
    db.session.flush()
    log_audit_event('INSERT', analysis)
    db.session.commit()

    current_app.logger.info('Analysis created: %s', analysis.id)
    return jsonify(analysis.to_dict()), 201


@analyses_bp.route('/api-analyses', methods=['GET'])
@login_required
def list_analyses():
    project_id = request.args.get('project_id')
    if not project_id:
        raise ApiError('project_id query parameter is required')

    current_app.logger.info('Fetching analyses for project: %s', project_id)
    analyses = (
        access.visible_analyses()
        .filter(Analysis.project_id == project_id)
        .order_by(Analysis.created_at.asc())
        .all()
    )
    return jsonify({'analyses': [a.to_dict() for a in analyses], 'count': len(analyses)}), 200


@analyses_bp.route('/api-analyses/<analysis_id>', methods=['GET'])
@login_required
def get_analysis(analysis_id):
    analysis = access.get_analysis(analysis_id)
    if analysis is None:
        raise NotFound('Analysis not found')

    sections = analysis.sections.order_by(Section.section_order.asc()).all()
    return jsonify({**analysis.to_dict(), 'sections': [s.to_dict() for s in sections]}), 200


@analyses_bp.route('/api-analyses/<analysis_id>', methods=['PUT'])
@login_required
def update_analysis(analysis_id):
    updates = sanitize_updates(json_body(), Analysis.EDITABLE)
    current_app.logger.info('Updating analysis: %s %s', analysis_id, updates)

    analysis = access.get_analysis(analysis_id)
    if analysis is None or not _valid_labels(updates.get('labels')):
        raise ApiError('Failed to update analysis')
    if not text_fields_ok(updates, ('name',), required=('name',)):
        raise ApiError('Failed to update analysis')

    old_data = analysis.to_dict()
    for field, value in updates.items():
        setattr(analysis, field, value)
    db.session.flush()
    log_audit_event('UPDATE', analysis, old_data=old_data)
    db.session.commit()
    return jsonify(analysis.to_dict()), 200


@analyses_bp.route('/api-analyses/<analysis_id>', methods=['DELETE'])
@login_required
def delete_analysis(analysis_id):
    current_app.logger.info('Deleting analysis: %s', analysis_id)

    analysis = access.get_analysis(analysis_id)
    if analysis is None:
        raise ApiError('Failed to delete analysis')

    log_audit_event('DELETE', analysis, old_data=analysis.to_dict())
    db.session.delete(analysis)
    db.session.commit()
    return jsonify({'message': 'Analysis deleted successfully'}), 200
