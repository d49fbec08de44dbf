"""
Audit history for the signed-in user's own changes
"""
from flask import Blueprint, jsonify, request
from flask_login import current_user, login_required

from radnotebook.models import AuditLog
from radnotebook.utils import clamp_int

audit_bp = Blueprint('audit', __name__)


@audit_bp.route('/api-audit-logs', methods=['GET'])
@login_required
def list_audit_logs():
    query = AuditLog.query.filter(AuditLog.user_id == current_user.id)

    table_name = request.args.get('table_name')
    if table_name:
        query = query.filter(AuditLog.table_name == table_name)
    record_id = request.args.get('record_id')
    if record_id:
        query = query.filter(AuditLog.record_id == record_id)

    limit = clamp_int(request.args.get('limit'), default=50, lo=1, hi=200)
    logs = query.order_by(AuditLog.created_at.desc()).limit(limit).all()
    return jsonify({'logs': [log.to_dict() for log in logs], 'count': len(logs)}), 200
