"""Report routes for MediCourier"""
from datetime import date
from flask import Blueprint, Response, request
from app.utils.security import jwt_required_with_user, permission_required
from app.utils.helpers import success_response, get_request_json
from app.services.reporting import build_tax_report, report_filters, report_to_csv, report_to_json
from app.services.shipping_cost import calculate_shipping_cost
from app.services.tax_calculator import get_tax_config

report_bp = Blueprint('report', __name__)


@report_bp.route('/gst', methods=['GET'])
@jwt_required_with_user()
@permission_required('reports.view')
def gst_report():
    """GST register of invoices; ``format=csv`` downloads it.

    Filters: from_date, to_date (issue date), country, courier (or partner)
    and payment_status.
    """
    report = build_tax_report(report_filters(request.args), get_tax_config())

    if request.args.get('format') == 'csv':
        filename = f'MediCourier_GST_Report_{date.today().isoformat()}.csv'
        return Response(
            report_to_csv(report),
            mimetype='text/csv',
            headers={'Content-Disposition': f'attachment; filename={filename}'}
        )

    return success_response(report_to_json(report))


@report_bp.route('/shipping-cost', methods=['POST'])
@jwt_required_with_user()
@permission_required('dashboard.view')
def shipping_cost():
    """Shipping cost estimate with fuel surcharge and tax"""
    return success_response(calculate_shipping_cost(get_request_json(), get_tax_config()).to_dict())
