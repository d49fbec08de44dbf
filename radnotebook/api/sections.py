"""
Sections API

POST   /api-sections?analysis_id=   create (next order = max + 1, or 0)
GET    /api-sections?analysis_id=   list for an analysis by order
GET    /api-sections/<id>           single section
PUT    /api-sections/<id>           update title / content / section_order
PATCH  /api-sections/reorder        bulk order update
DELETE /api-sections/<id>           delete
"""
from flask import Blueprint, current_app, jsonify, request
from flask_login import login_required

from radnotebook import db
from radnotebook.api import access
from radnotebook.auth import log_audit_event
from radnotebook.errors import ApiError, NotFound
from radnotebook.models import Section
from radnotebook.utils import json_body, sanitize_updates, text_fields_ok

sections_bp = Blueprint('sections', __name__)


def _is_order(value):
    return isinstance(value, int) and not isinstance(value, bool)


def _valid_updates(updates):
    if 'section_order' in updates and not _is_order(updates['section_order']):
        return False
    return text_fields_ok(updates, ('title', 'content'), required=('title',))


@sections_bp.route('/api-sections', methods=['POST'])
@login_required
def create_section():
    payload = json_body()
    analysis_id = payload.get('analysis_id') or request.args.get('analysis_id')
    if not analysis_id:
        raise ApiError('analysis_id is required')

    analysis = access.get_analysis(analysis_id)
    explicit_order = payload.get('section_order')
    if (analysis is None or (explicit_order is not None and not _is_order(explicit_order))
            or not text_fields_ok(payload, ('title', 'content'))):
        current_app.logger.warning('Section creation rejected for analysis: %s', analysis_id)
        raise ApiError('Failed to create section')

    next_order = explicit_order if explicit_order is not None else Section.next_order(analysis.id)
    current_app.logger.info('Creating section for analysis: %s, order: %s', analysis.id, next_order)

    section = Section(
        analysis_id=analysis.id,
        title=payload.get('title') or 'New Section',
        content=payload.get('content') or None,
        section_order=next_order,
    )
    db.session.add(section)
    db.session.flush()
    log_audit_event('INSERT', section)
    db.session.commit()

    current_app.logger.info('Section created: %s', section.id)
    return jsonify(section.to_dict()), 201


@sections_bp.route('/api-sections', methods=['GET'])
@login_required
def list_sections():
    analysis_id = request.args.get('analysis_id')
    if not analysis_id:
        raise ApiError('analysis_id query parameter is required')

    current_app.logger.info('Fetching sections for analysis: %s', analysis_id)
    sections = (
        access.visible_sections()
        .filter(Section.analysis_id == analysis_id)
        .order_by(Section.section_order.asc())
        .all()
    )
    return jsonify({'sections': [s.to_dict() for s in sections], 'count': len(sections)}), 200


@sections_bp.route('/api-sections/<section_id>', methods=['GET'])
@login_required
def get_section(section_id):
    section = access.get_section(section_id)
    if section is None:
        raise NotFound('Section not found')
    return jsonify(section.to_dict()), 200


@sections_bp.route('/api-sections/<section_id>', methods=['PUT'])
@login_required
def update_section(section_id):
    updates = sanitize_updates(json_body(), Section.EDITABLE)
    current_app.logger.info('Updating section: %s %s', section_id, sorted(updates))

    section = access.get_section(section_id)
    if section is None or not _valid_updates(updates):
        raise ApiError('Failed to update section')

    old_data = section.to_dict()
    for field, value in updates.items():
        setattr(section, field, value)
    db.session.flush()
    log_audit_event('UPDATE', section, old_data=old_data)
    db.session.commit()
    return jsonify(section.to_dict()), 200


@sections_bp.route('/api-sections/reorder', methods=['PATCH'])
@login_required
def reorder_sections():
    items = json_body().get('sections')
    if not isinstance(items, list):
        raise ApiError('sections array is required')

    current_app.logger.info('Reordering %d sections', len(items))

    for item in items:
        if not isinstance(item, dict) or not _is_order(item.get('section_order')):
            raise ApiError('Each item needs an id and an integer section_order')
        section = access.get_section(item.get('id'))
        if section is None:
            # Invisible rows are skipped, like a filtered bulk update
            continue
        if section.section_order != item['section_order']:
            old_data = section.to_dict()
            section.section_order = item['section_order']
            db.session.flush()
            log_audit_event('UPDATE', section, old_data=old_data)
    db.session.commit()
    return jsonify({'message': 'Sections reordered successfully'}), 200


@sections_bp.route('/api-sections/<section_id>', methods=['DELETE'])
@login_required
def delete_section(section_id):
    current_app.logger.info('Deleting section: %s', section_id)

    section = access.get_section(section_id)
    if section is None:
        raise ApiError('Failed to delete section')

    log_audit_event('DELETE', section, old_data=section.to_dict())
    db.session.delete(section)
    db.session.commit()
    return jsonify({'message': 'Section deleted successfully'}), 200
