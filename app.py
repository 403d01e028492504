from flask import Flask, render_template
from flask_login import LoginManager, login_required
from flask_wtf import CSRFProtect
from config import Config
from flask_babel import Babel, format_currency, format_datetime
from models import db
from models.user import load_user
from models.report import (get_total_revenue, get_sales_total, get_active_users,
                           get_recent_activities, get_monthly_sales_data, paid_ratio)

# Initialize extensions
login_manager = LoginManager()
babel = Babel()
csrf = CSRFProtect()

def create_app(config_class=Config, supabase_client=None, **overrides):
    app = Flask(__name__)
    app.config.from_object(config_class)
    app.config.update(overrides)
    app.logger.setLevel(app.config.get('LOG_LEVEL', 'INFO'))

    db.init_app(app, client=supabase_client)
    login_manager.init_app(app)
    login_manager.login_view = 'auth.login'
    login_manager.login_message_category = 'warning'
    babel.init_app(app)
    csrf.init_app(app)

    # Flask-Login user loader
    login_manager.user_loader(load_user)

    # Register Blueprints
    from routes.auth import auth_bp
    app.register_blueprint(auth_bp)
    from routes.products import products_bp
    app.register_blueprint(products_bp)
    from routes.orders import orders_bp
    app.register_blueprint(orders_bp)
    from routes.customers import customers_bp
    app.register_blueprint(customers_bp)
    from routes.reports import reports_bp
    app.register_blueprint(reports_bp)
    from routes.storage import storage_bp
    app.register_blueprint(storage_bp)
    from routes.api import api_bp
    csrf.exempt(api_bp)
    app.register_blueprint(api_bp)

    # Dashboard route
    @app.route("/")
    @login_required
    def dashboard():
        total_revenue = get_total_revenue()
        sales_total = get_sales_total()
        active_users = get_active_users()
        monthly_sales = get_monthly_sales_data()
        activities = get_recent_activities(app.config.get('RECENT_ACTIVITY_LIMIT', 5))
        return render_template('dashboard.html',
                               title='Dashboard',
                               total_revenue=total_revenue,
                               sales_total=sales_total,
                               active_users=active_users,
                               paid_ratio=paid_ratio(sales_total, total_revenue),
                               monthly_sales=monthly_sales,
                               chart_max=max([m['total'] for m in monthly_sales] + [0]),
                               activities=activities)

    @app.template_filter('currency')
    def currency_filter(value):
        return format_currency(value or 0, app.config.get('CURRENCY', 'USD'))

    @app.template_filter('datetime')
    def datetime_filter(value, fmt='medium'):
        return format_datetime(value, fmt) if value else ''

    @app.errorhandler(404)
    def not_found(error):
        return render_template('errors/404.html', title='Not found'), 404

    @app.errorhandler(500)
    def server_error(error):
        app.logger.error('Unhandled error: %s', error)
        return render_template('errors/500.html', title='Something went wrong'), 500

    return app

if __name__ == "__main__":
    app = create_app()
    app.run(debug=True)
