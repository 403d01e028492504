from flask import Blueprint, jsonify, request, current_app
from flask_login import login_required
from models.report import get_monthly_sales_data, get_recent_activities

reports_bp = Blueprint('reports', __name__, url_prefix='/reports')

@reports_bp.route('/api/monthly-sales')
@login_required
def api_monthly_sales():
    year = request.args.get('year', type=int)
    sales = get_monthly_sales_data(year)
    return jsonify({
        'labels': [month['name'] for month in sales],
        'data': [month['total'] for month in sales],
    })

@reports_bp.route('/api/recent-activity')
@login_required
def api_recent_activity():
    limit = request.args.get('limit', current_app.config.get('RECENT_ACTIVITY_LIMIT', 5), type=int)
    return jsonify(get_recent_activities(max(1, min(limit, 50))))
