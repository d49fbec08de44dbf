"""
Row visibility for the signed-in user

Rows owned by someone else behave exactly like rows that do not exist.
"""
from flask_login import current_user

from radnotebook.models import Analysis, Dataset, Project, Section


def visible_projects():
    return Project.query.filter(Project.user_id == current_user.id)


def visible_analyses():
    return Analysis.query.join(Project, Analysis.project_id == Project.id).filter(
        Project.user_id == current_user.id)


def visible_datasets():
    return Dataset.query.join(Project, Dataset.project_id == Project.id).filter(
        Project.user_id == current_user.id)


def visible_sections():
    return (
        Section.query
        .join(Analysis, Section.analysis_id == Analysis.id)
        .join(Project, Analysis.project_id == Project.id)
        .filter(Project.user_id == current_user.id)
    )


def get_project(project_id):
    return visible_projects().filter(Project.id == project_id).first()


def get_analysis(analysis_id):
    return visible_analyses().filter(Analysis.id == analysis_id).first()


def get_dataset(dataset_id):
    return visible_datasets().filter(Dataset.id == dataset_id).first()


def get_section(section_id):
    return visible_sections().filter(Section.id == section_id).first()
