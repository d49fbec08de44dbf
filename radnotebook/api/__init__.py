"""
REST blueprints, one per resource path
"""
from radnotebook.api.analyses import analyses_bp
from radnotebook.api.analyze import analyze_bp
from radnotebook.api.audit import audit_bp
from radnotebook.api.datasets import datasets_bp
from radnotebook.api.projects import projects_bp
from radnotebook.api.sections import sections_bp
from radnotebook.api.shared import shared_bp

API_BLUEPRINTS = (
    projects_bp,
    analyses_bp,
    sections_bp,
    datasets_bp,
    shared_bp,
    audit_bp,
    analyze_bp,
)
