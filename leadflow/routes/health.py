"""
Health routes — liveness and provider circuit-breaker state.
"""
import logging
from flask import Blueprint, jsonify

from leadflow.services.circuit_breaker import get_all_breakers

logger = logging.getLogger('routes.health')

bp = Blueprint('health', __name__)


@bp.route('/health')
def health_check():
    """Liveness check."""
    return jsonify({"status": "healthy"}), 200


@bp.route('/api/health')
def api_health():
    """Circuit-breaker state for every provider."""
    services = {name: breaker.get_health() for name, breaker in get_all_breakers().items()}
    degraded = [name for name, health in services.items() if health['state'] != 'closed']
    return jsonify({
        'status': 'degraded' if degraded else 'healthy',
        'services': services,
    }), 200


@bp.route('/api/health/<service>/reset', methods=['POST'])
def reset_circuit(service):
    breaker = get_all_breakers().get(service)
    if breaker is None:
        return jsonify({'ok': False, 'error': f'Unknown service: {service}'}), 404
    breaker.reset()
    logger.info("Circuit for %s reset via API", service)
    return jsonify({'ok': True, 'service': service, 'state': breaker.state}), 200
