from flask import Blueprint, render_template, redirect, url_for, flash, request, jsonify
from flask_login import login_user, logout_user, login_required, current_user
from functools import wraps
from urllib.parse import urlparse
from forms.auth_forms import LoginForm, RegisterForm
from models.user import AuthFailed, sign_in, sign_up, sign_out

auth_bp = Blueprint('auth', __name__, url_prefix='/auth')

# API routes answer 401 instead of redirecting to the login page
def api_login_required(f):
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not current_user.is_authenticated:
            return jsonify({'error': 'Unauthorized'}), 401
        return f(*args, **kwargs)
    return decorated_function

def safe_next(target):
    if not target:
        return None
    parsed = urlparse(target)
    if parsed.scheme or parsed.netloc or not target.startswith('/'):
        return None
    return target

@auth_bp.before_app_request
def redirect_signed_in_users():
    # signed-in users have no business on the login/register pages
    if request.endpoint in ('auth.login', 'auth.register') and current_user.is_authenticated:
        return redirect(url_for('dashboard'))

@auth_bp.route('/login', methods=['GET', 'POST'])
def login():
    form = LoginForm()
    if form.validate_on_submit():
        try:
            user = sign_in(form.email.data, form.password.data)
        except AuthFailed as e:
            flash(f'Sign in failed: {e}', 'danger')
        else:
            login_user(user)
            flash('Signed in successfully', 'success')
            return redirect(safe_next(request.args.get('next')) or url_for('dashboard'))
    return render_template('auth/login.html', title='Sign in', form=form)

@auth_bp.route('/register', methods=['GET', 'POST'])
def register():
    form = RegisterForm()
    if form.validate_on_submit():
        try:
            sign_up(form.email.data, form.password.data)
        except AuthFailed as e:
            flash(f'Registration failed: {e}', 'danger')
        else:
            flash('Registration successful! Check your email to verify and sign in.', 'success')
            return redirect(url_for('auth.login'))
    return render_template('auth/register.html', title='Create account', form=form)

@auth_bp.route('/logout')
@login_required
def logout():
    sign_out()
    logout_user()
    flash('Signed out', 'success')
    return redirect(url_for('auth.login'))
