"""
AUTHENTICATION ROUTES
=====================
"""

from flask import Blueprint
from flask_login import login_user, logout_user, login_required, current_user
from app.models import User
from app.routes import json_body, ok
from app.services.exceptions import ValidationError, AuthorizationError

auth_bp = Blueprint('auth', __name__, url_prefix='/auth')


@auth_bp.route('/login', methods=['POST'])
def login():
    payload = json_body()
    email = (payload.get('email') or '').strip().lower()
    password = payload.get('password') or ''

    if not email or not password:
        raise ValidationError('Email and password are required')

    user = User.query.filter_by(email=email).first()
    if not user or not user.check_password(password):
        raise AuthorizationError('Invalid email or password')

    login_user(user, remember=bool(payload.get('remember')))
    return ok(user.to_dict(), message=f'Welcome back, {user.name}!')


@auth_bp.route('/logout', methods=['POST'])
@login_required
def logout():
    logout_user()
    return ok(message='You have been logged out.')


@auth_bp.route('/me')
@login_required
def me():
    return ok(current_user.to_dict())
