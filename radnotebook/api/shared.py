"""
Public read access through a project's share token (no authentication)
"""
from flask import Blueprint, jsonify

from radnotebook.errors import NotFound
from radnotebook.models import Analysis, Project, Section

shared_bp = Blueprint('shared', __name__)

NOT_SHARED = 'Project not found or is not public'


def _public_project(share_token):
    project = Project.query.filter_by(share_token=share_token, is_public=True).first()
    if project is None:
        raise NotFound(NOT_SHARED)
    return project


@shared_bp.route('/api-shared/<share_token>', methods=['GET'])
def shared_project(share_token):
    project = _public_project(share_token)
    analyses = project.analyses.order_by(Analysis.created_at.asc()).all()
    return jsonify({
        **project.to_public_dict(),
        'analyses': [{'id': a.id, 'name': a.name, 'labels': list(a.labels or [])} for a in analyses],
    }), 200


@shared_bp.route('/api-shared/<share_token>/analyses/<analysis_id>/sections', methods=['GET'])
def shared_sections(share_token, analysis_id):
    project = _public_project(share_token)
    analysis = project.analyses.filter(Analysis.id == analysis_id).first()
    if analysis is None:
        raise NotFound('Analysis not found')

    sections = analysis.sections.order_by(Section.section_order.asc()).all()
    return jsonify({
        'sections': [
            {'id': s.id, 'title': s.title, 'content': s.content, 'section_order': s.section_order}
            for s in sections
        ],
        'count': len(sections),
    }), 200
