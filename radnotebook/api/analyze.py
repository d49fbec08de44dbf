"""
Report analysis: categorize report text through the AI gateway
"""
from flask import Blueprint, current_app, jsonify
from flask_login import current_user, login_required

from radnotebook.errors import ApiError
from radnotebook.services import openai_service
from radnotebook.utils import json_body

analyze_bp = Blueprint('analyze', __name__)

GATEWAY_ERRORS = {
    429: (429, 'Rate limit exceeded. Please try again later.'),
    402: (402, 'AI usage limit reached. Please add credits.'),
}


@analyze_bp.route('/analyze-report', methods=['POST'])
@login_required
def analyze_report():
    current_app.logger.info('Authenticated user: %s', current_user.id)

    report_text = json_body().get('reportText')
    if not report_text or not isinstance(report_text, str):
        raise ApiError('reportText must be a non-empty string')

    text = report_text.strip()
    if len(text) < current_app.config['REPORT_TEXT_MIN']:
        raise ApiError('Report text too short (minimum 10 characters)')
    if len(text) > current_app.config['REPORT_TEXT_MAX']:
        raise ApiError('Report text too long (maximum 50,000 characters)')

    ok, msg = openai_service.client_ready()
    if not ok:
        current_app.logger.error('AI gateway not configured: %s', msg)
        raise ApiError('AI service not configured', status_code=500)

    current_app.logger.info('Analyzing report for user: %s length: %d', current_user.id, len(text))
    try:
        result = openai_service.categorize_report(text)
    except openai_service.GatewayError as e:
        current_app.logger.error('AI gateway error: %s %s', e.status_code, e)
        status, message = GATEWAY_ERRORS.get(e.status_code, (500, 'AI analysis failed'))
        raise ApiError(message, status_code=status)

    current_app.logger.info('AI response received for user: %s', current_user.id)
    return jsonify(result), 200
