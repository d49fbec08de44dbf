"""
Database Models

Key Models:
- User: Auth record (email + password hash + token epoch)
- Profile: One per user; display name, avatar, last project, legacy role
- UserRole: Role assignments (supersedes Profile.role)
- Project: Owned by a user; shareable through an opaque share token
- Analysis: Belongs to a project
- Section: Ordered text block inside an analysis
- Dataset: Informational listing under a project
- AuditLog: Row-level change history
"""
import enum
import secrets
import uuid
from datetime import datetime, timezone

from flask_login import UserMixin
from werkzeug.security import generate_password_hash, check_password_hash

from radnotebook import db


def _uuid():
    return str(uuid.uuid4())


def _now():
    return datetime.now(timezone.utc)


def _iso(value):
    return value.isoformat() if value else None


class AppRole(enum.Enum):
    STUDENT = "student"
    CLINICIAN = "clinician"
    RESEARCHER = "researcher"
    ADMIN = "admin"


class User(UserMixin, db.Model):
    __tablename__ = 'users'

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    email = db.Column(db.String(255), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(255), nullable=False)
    token_epoch = db.Column(db.Integer, nullable=False, default=0)
    created_at = db.Column(db.DateTime(timezone=True), default=_now)

    profile = db.relationship('Profile', back_populates='user', uselist=False,
                              cascade='all, delete-orphan')
    roles = db.relationship('UserRole', back_populates='user', lazy='dynamic',
                            cascade='all, delete-orphan')
    projects = db.relationship('Project', back_populates='owner', lazy='dynamic',
                               cascade='all, delete-orphan')

    def set_password(self, password):
        self.password_hash = generate_password_hash(password)

    def check_password(self, password):
        return check_password_hash(self.password_hash, password)

    def revoke_tokens(self):
        """Invalidate every bearer token issued so far"""
        self.token_epoch = (self.token_epoch or 0) + 1

    def has_role(self, role):
        role = role if isinstance(role, AppRole) else AppRole(role)
        return self.roles.filter_by(role=role).first() is not None

    @property
    def is_admin(self):
        return self.has_role(AppRole.ADMIN)

    def to_dict(self):
        return {
            'id': self.id,
            'email': self.email,
            'created_at': _iso(self.created_at),
        }


class Profile(db.Model):
    __tablename__ = 'profiles'

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    user_id = db.Column(db.String(36), db.ForeignKey('users.id', ondelete='CASCADE'),
                        unique=True, nullable=False)
    display_name = db.Column(db.String(255))
    avatar_url = db.Column(db.String(1024))
    last_project_id = db.Column(db.String(36))
    last_login_at = db.Column(db.DateTime(timezone=True))
    # Legacy single role; role checks go through UserRole
    role = db.Column(db.Enum(AppRole), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), default=_now)
    updated_at = db.Column(db.DateTime(timezone=True), default=_now, onupdate=_now)

    user = db.relationship('User', back_populates='profile')

    def to_dict(self):
        return {
            'id': self.id,
            'user_id': self.user_id,
            'display_name': self.display_name,
            'avatar_url': self.avatar_url,
            'last_project_id': self.last_project_id,
            'last_login_at': _iso(self.last_login_at),
            'role': self.role.value if self.role else None,
            'created_at': _iso(self.created_at),
            'updated_at': _iso(self.updated_at),
        }


class UserRole(db.Model):
    __tablename__ = 'user_roles'
    __table_args__ = (db.UniqueConstraint('user_id', 'role', name='uq_user_roles_user_role'),)

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    user_id = db.Column(db.String(36), db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False)
    role = db.Column(db.Enum(AppRole), nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), default=_now)

    user = db.relationship('User', back_populates='roles')

    def to_dict(self):
        return {
            'id': self.id,
            'user_id': self.user_id,
            'role': self.role.value,
            'created_at': _iso(self.created_at),
        }


class Project(db.Model):
    __tablename__ = 'projects'

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    user_id = db.Column(db.String(36), db.ForeignKey('users.id', ondelete='CASCADE'),
                        nullable=False, index=True)
    name = db.Column(db.String(255), nullable=False, default='Untitled Project')
    description = db.Column(db.Text)
    is_public = db.Column(db.Boolean, nullable=False, default=False)
    share_token = db.Column(db.String(64), unique=True, nullable=False,
                            default=lambda: secrets.token_urlsafe(16))
    created_at = db.Column(db.DateTime(timezone=True), default=_now, index=True)
    updated_at = db.Column(db.DateTime(timezone=True), default=_now, onupdate=_now)

    owner = db.relationship('User', back_populates='projects')
    analyses = db.relationship('Analysis', back_populates='project', lazy='dynamic',
                               cascade='all, delete-orphan')
    datasets = db.relationship('Dataset', back_populates='project', lazy='dynamic',
                               cascade='all, delete-orphan')

    EDITABLE = ('name', 'description', 'is_public')

    def to_dict(self):
        return {
            'id': self.id,
            'user_id': self.user_id,
            'name': self.name,
            'description': self.description,
            'is_public': bool(self.is_public),
            'share_token': self.share_token,
            'created_at': _iso(self.created_at),
            'updated_at': _iso(self.updated_at),
        }

    def to_public_dict(self):
        """Fields readable through a share link"""
        return {
            'id': self.id,
            'name': self.name,
            'description': self.description,
            'is_public': bool(self.is_public),
            'created_at': _iso(self.created_at),
            'updated_at': _iso(self.updated_at),
        }


class Analysis(db.Model):
    __tablename__ = 'analyses'

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    project_id = db.Column(db.String(36), db.ForeignKey('projects.id', ondelete='CASCADE'),
                           nullable=False, index=True)
    name = db.Column(db.String(255), nullable=False, default='New Analysis')
    labels = db.Column(db.JSON)
    created_at = db.Column(db.DateTime(timezone=True), default=_now, index=True)
    updated_at = db.Column(db.DateTime(timezone=True), default=_now, onupdate=_now)

    project = db.relationship('Project', back_populates='analyses')
    sections = db.relationship('Section', back_populates='analysis', lazy='dynamic',
                               cascade='all, delete-orphan')

    EDITABLE = ('name', 'labels')

    def to_dict(self):
        return {
            'id': self.id,
            'project_id': self.project_id,
            'name': self.name,
            'labels': list(self.labels or []),
            'created_at': _iso(self.created_at),
            'updated_at': _iso(self.updated_at),
        }


class Section(db.Model):
    __tablename__ = 'sections'

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    analysis_id = db.Column(db.String(36), db.ForeignKey('analyses.id', ondelete='CASCADE'),
                            nullable=False, index=True)
    title = db.Column(db.String(255), nullable=False, default='New Section')
    content = db.Column(db.Text)
    # Not unique: two sessions creating at once can collide
    section_order = db.Column(db.Integer, nullable=False, default=0)
    created_at = db.Column(db.DateTime(timezone=True), default=_now)
    updated_at = db.Column(db.DateTime(timezone=True), default=_now, onupdate=_now)

    analysis = db.relationship('Analysis', back_populates='sections')

    EDITABLE = ('title', 'content', 'section_order')

    @classmethod
    def next_order(cls, analysis_id):
        """max(section_order) + 1 within the analysis, 0 when empty"""
        current = db.session.query(db.func.max(cls.section_order)).filter_by(
            analysis_id=analysis_id).scalar()
        return 0 if current is None else current + 1

    def to_dict(self):
        return {
            'id': self.id,
            'analysis_id': self.analysis_id,
            'title': self.title,
            'content': self.content,
            'section_order': self.section_order,
            'created_at': _iso(self.created_at),
            'updated_at': _iso(self.updated_at),
        }


class Dataset(db.Model):
    __tablename__ = 'datasets'

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    project_id = db.Column(db.String(36), db.ForeignKey('projects.id', ondelete='CASCADE'),
                           nullable=False, index=True)
    name = db.Column(db.String(255), nullable=False, default='Untitled Dataset')
    description = db.Column(db.Text)
    created_at = db.Column(db.DateTime(timezone=True), default=_now, index=True)
    updated_at = db.Column(db.DateTime(timezone=True), default=_now, onupdate=_now)

    project = db.relationship('Project', back_populates='datasets')

    EDITABLE = ('name', 'description')

    def to_dict(self):
        return {
            'id': self.id,
            'project_id': self.project_id,
            'name': self.name,
            'description': self.description,
            'created_at': _iso(self.created_at),
            'updated_at': _iso(self.updated_at),
        }


class AuditLog(db.Model):
    __tablename__ = 'audit_logs'

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    user_id = db.Column(db.String(36), db.ForeignKey('users.id', ondelete='SET NULL'),
                        nullable=True, index=True)
    action = db.Column(db.String(16), nullable=False)
    table_name = db.Column(db.String(64), nullable=False, index=True)
    record_id = db.Column(db.String(36), index=True)
    old_data = db.Column(db.JSON)
    new_data = db.Column(db.JSON)
    created_at = db.Column(db.DateTime(timezone=True), default=_now, index=True)

    def to_dict(self):
        return {
            'id': self.id,
            'user_id': self.user_id,
            'action': self.action,
            'table_name': self.table_name,
            'record_id': self.record_id,
            'old_data': self.old_data,
            'new_data': self.new_data,
            'created_at': _iso(self.created_at),
        }
