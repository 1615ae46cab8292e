"""Analytics endpoint for a single UTM link."""

from quart import Blueprint, current_app, jsonify

analytics_bp = Blueprint("analytics", __name__)


@analytics_bp.route("/<code>/analytics", methods=["GET"])
async def get_link_analytics(code: str):
    """Get the analytics report for a link.

    Inactive links still report analytics.

    Args:
        code: Short code.

    Returns:
        JSON with overview, time series and distributions.
    """
    report = await current_app.extensions["analytics_service"].for_code(code)
    return jsonify({"status": "success", "data": report.to_api_dict()}), 200
