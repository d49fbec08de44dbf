"""
Account forms (Flask-WTF, loaded from JSON bodies)
"""
import re

from flask_wtf import FlaskForm
from wtforms import StringField
from wtforms.validators import DataRequired, Email, Length, Optional, ValidationError

PASSWORD_RULES = (
    (re.compile(r"[a-z]"), "Password must contain at least one lowercase letter"),
    (re.compile(r"[A-Z]"), "Password must contain at least one uppercase letter"),
    (re.compile(r"[0-9]"), "Password must contain at least one number"),
    (re.compile(r"[^a-zA-Z0-9]"), "Password must contain at least one special character"),
)


def strong_password(form, field):
    """Collect every unmet password rule into one validation error"""
    errors = [message for pattern, message in PASSWORD_RULES if not pattern.search(field.data or "")]
    if errors:
        raise ValidationError("; ".join(errors))


class _JsonForm(FlaskForm):
    class Meta:
        csrf = False

    def error_list(self):
        out = []
        for messages in self.errors.values():
            for message in messages:
                for part in message.split("; "):
                    if part and part not in out:
                        out.append(part)
        return out


class SignupForm(_JsonForm):
    email = StringField("email", validators=[
        DataRequired(message="Email and password are required"),
        Email(message="Please enter a valid email address"),
        Length(max=255, message="Email must be less than 255 characters"),
    ])
    password = StringField("password", validators=[
        DataRequired(message="Email and password are required"),
        Length(min=8, message="Password must be at least 8 characters"),
        Length(max=72, message="Password must be less than 72 characters"),
        strong_password,
    ])
    display_name = StringField("display_name", validators=[Optional(), Length(max=255)])


class PasswordForm(_JsonForm):
    password = StringField("password", validators=[
        DataRequired(message="Password is required"),
        Length(min=8, message="Password must be at least 8 characters"),
        Length(max=72, message="Password must be less than 72 characters"),
        strong_password,
    ])
