"""
Health routes — liveness plus circuit breaker state for external providers.
"""
import logging
from flask import Blueprint, jsonify

from arc.services.circuit_breaker import get_all_breakers

logger = logging.getLogger('routes.health')

bp = Blueprint('health', __name__)


@bp.route('/health')
def health_check():
    """Liveness probe."""
    return jsonify({"status": "healthy"}), 200


@bp.route('/api/health')
def api_health():
    """Circuit breaker health for every registered provider."""
    services = {name: breaker.get_health() for name, breaker in get_all_breakers().items()}
    degraded = any(s['state'] != 'closed' for s in services.values())
    return jsonify({'status': 'degraded' if degraded else 'healthy', 'services': services})


@bp.route('/api/health/<service>/reset', methods=['POST'])
def reset_circuit(service):
    """Manually close a provider's circuit."""
    breaker = get_all_breakers().get(service)
    if breaker is None:
        return jsonify({'ok': False, 'error': f'Unknown service: {service}'}), 404
    breaker.reset()
    logger.info("Circuit '%s' reset via API", service)
    return jsonify({'ok': True, 'service': service, 'state': breaker.state})
