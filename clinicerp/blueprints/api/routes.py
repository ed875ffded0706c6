import logging

from flask import jsonify, request

from ...authz import tenant_required
from ...extensions import limiter
from ...utils.api_responses import APIResponse
from ...utils.cache_manager import all_cache_stats
from ...utils.timezone_utils import TimezoneUtils
from . import api_bp

logger = logging.getLogger(__name__)


@api_bp.route('/', methods=['GET', 'HEAD'])
@limiter.exempt
def health_check():
    """Health check endpoint for monitoring services"""
    if request.method == 'HEAD':
        return '', 200
    return jsonify({'status': 'ok', 'timestamp': TimezoneUtils.to_iso(TimezoneUtils.utc_now())})


@api_bp.route('/cache/stats')
@tenant_required
def cache_stats():
    return APIResponse.success(all_cache_stats())
