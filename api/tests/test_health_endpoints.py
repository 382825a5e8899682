"""
Tests for health check and system status endpoints.

This module tests the dependency checks of the gateway (Redis session
store, ouvidoria API, media staging), system metrics and status reporting.
"""

import pytest
import json
from unittest.mock import patch

from services.health import HealthCheckService


def _redis_down(upstash_client):
    def failing_ping():
        raise ConnectionError("Redis down")
    upstash_client.ping = failing_ping


class TestHealthCheckEndpoint:
    """Test cases for the /api/healthz endpoint."""

    def test_health_check_success_all_healthy(self, client):
        """Test health check when all dependencies are healthy."""
        response = client.get('/api/healthz')

        assert response.status_code == 200
        data = json.loads(response.data)

        # Check HAL structure
        assert 'self' in data['_links']
        assert data['_links']['new-manifestation']['method'] == 'POST'

        # Check health data
        assert data['status'] == 'healthy'
        assert data['service'] == 'participa-df-gateway'
        assert data['version'] == '1.0.0'
        assert 'timestamp' in data

        deps = data['dependencies']
        assert deps['redis']['status'] == 'healthy'
        assert deps['ouvidoria_api']['status'] == 'healthy'
        assert deps['ouvidoria_api']['base_url'] == 'https://ouvidoria.example.com'
        assert deps['media_staging']['status'] == 'healthy'
        assert 'free_gb' in deps['media_staging']

        assert 'system_metrics' in data
        assert 'feature_flags' in data
        assert 'configuration' in data

    def test_health_check_degraded_when_ouvidoria_down(self, client, ouvidoria_client):
        """The gateway stays operational while the ouvidoria API is unreachable."""
        ouvidoria_client.ping.return_value = False

        response = client.get('/api/healthz')

        assert response.status_code == 200
        data = json.loads(response.data)
        assert data['status'] == 'degraded'
        assert data['dependencies']['ouvidoria_api']['error'] == 'Ouvidoria API unreachable'

    def test_health_check_degraded_when_redis_down(self, client, upstash_client):
        _redis_down(upstash_client)

        response = client.get('/api/healthz')

        data = json.loads(response.data)
        assert response.status_code == 200
        assert data['status'] == 'degraded'
        assert data['dependencies']['redis']['status'] == 'unhealthy'
        assert 'error' in data['dependencies']['redis']

    def test_health_check_unhealthy_all_dependencies_down(self, client, upstash_client, ouvidoria_client):
        """Test health check when all dependencies are unhealthy."""
        _redis_down(upstash_client)
        ouvidoria_client.ping.return_value = False

        with patch('services.health.os.access', return_value=False):
            response = client.get('/api/healthz')

        assert response.status_code == 503
        data = json.loads(response.data)
        assert data['status'] == 'unhealthy'
        assert data['dependencies']['media_staging']['error'] == 'Media staging directory is not writable'


class TestIndexEndpoint:
    """Test cases for the API entry point."""

    def test_index_links(self, client):
        response = client.get('/')

        assert response.status_code == 200
        data = json.loads(response.data)
        assert data['service'] == 'participa-df-gateway'
        assert data['environment'] == 'test'
        links = data['_links']
        assert links['manifestations']['href'] == 'https://gateway.example.com/api/manifestations'
        assert links['protocol']['templated'] is True
        assert 'health' in links


class TestHealthCheckService:
    """Test cases for HealthCheckService."""

    @pytest.fixture
    def health_service(self, redis_service, ouvidoria_client, staging):
        return HealthCheckService(redis_service, ouvidoria_client, staging)

    def test_redis_round_trip(self, health_service, upstash_client):
        result = health_service._check_redis_health()

        assert result['status'] == 'healthy'
        assert 'health_check_test' not in upstash_client.data

    def test_redis_without_client(self, ouvidoria_client, staging):
        from services.redis import RedisService

        service = HealthCheckService(RedisService(), ouvidoria_client, staging)

        result = service._check_redis_health()
        assert result['status'] == 'unhealthy'
        assert result['error'] == 'Redis ping failed'

    def test_redis_value_mismatch(self, health_service, upstash_client):
        upstash_client.get = lambda key: "something else"

        result = health_service._check_redis_health()

        assert result['status'] == 'unhealthy'
        assert result['error'] == 'Redis set/get test failed'

    @pytest.mark.parametrize("statuses,expected", [
        (["healthy", "healthy", "healthy"], "healthy"),
        (["healthy", "unhealthy", "healthy"], "degraded"),
        (["unhealthy", "unhealthy", "unhealthy"], "unhealthy"),
    ])
    def test_determine_overall_status(self, health_service, statuses, expected):
        assert health_service._determine_overall_status(statuses) == expected

    def test_system_metrics(self, health_service):
        metrics = health_service._get_system_metrics()

        assert 'cpu_percent' in metrics
        assert metrics['memory']['total_mb'] > 0
        assert 0 <= metrics['disk']['percent'] <= 100

    def test_system_metrics_failure(self, health_service):
        with patch('services.health.psutil.cpu_percent', side_effect=RuntimeError("no /proc")):
            metrics = health_service._get_system_metrics()

        assert metrics['error'].startswith('Failed to collect system metrics')

    def test_configuration_status(self, health_service):
        with patch.dict('os.environ', {
            'REDIS_URL': 'https://redis.example.com',
            'JWT_PUBLIC_KEY': 'key',
            'ENVIRONMENT': 'test'
        }, clear=True):
            config = health_service._get_configuration_status()

        assert config['all_critical_configured'] is True
        assert config['ouvidoria_api_configured'] is False

    def test_feature_flags(self, health_service):
        with patch.dict('os.environ', {'DOCS_ENABLED': 'false'}, clear=True):
            flags = health_service._get_feature_flags()

        assert flags == {'docs_enabled': False, 'otel_enabled': True}
