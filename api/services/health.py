"""
Health Check Service

Provides health monitoring for the gateway dependencies: the Redis session
store, the ouvidoria API, the media staging directory and system metrics.
"""

import os
import time
import psutil
from datetime import datetime, timezone
from typing import Dict, Any
from opentelemetry import trace

from services.redis import RedisService
from services.ouvidoria import OuvidoriaClient
from services.staging import AttachmentStaging

tracer = trace.get_tracer(__name__)

SERVICE_NAME = "participa-df-gateway"


def _now() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


class HealthCheckService:
    """Service for system health monitoring."""

    def __init__(
        self,
        redis_service: RedisService,
        ouvidoria_client: OuvidoriaClient,
        staging: AttachmentStaging
    ):
        self.redis_service = redis_service
        self.ouvidoria_client = ouvidoria_client
        self.staging = staging
        self.service_version = "1.0.0"

    def get_comprehensive_health(self) -> Dict[str, Any]:
        """Get health status including all dependencies and metrics."""
        with tracer.start_as_current_span("health.comprehensive_check") as span:
            start_time = time.time()

            redis_health = self._check_redis_health()
            ouvidoria_health = self._check_ouvidoria_health()
            staging_health = self._check_staging_health()

            system_metrics = self._get_system_metrics()

            overall_status = self._determine_overall_status([
                redis_health["status"],
                ouvidoria_health["status"],
                staging_health["status"]
            ])

            response_time_ms = round((time.time() - start_time) * 1000, 2)

            health_data = {
                "status": overall_status,
                "service": SERVICE_NAME,
                "version": self.service_version,
                "environment": os.getenv('ENVIRONMENT', 'development'),
                "timestamp": _now(),
                "response_time_ms": response_time_ms,
                "dependencies": {
                    "redis": redis_health,
                    "ouvidoria_api": ouvidoria_health,
                    "media_staging": staging_health
                },
                "system_metrics": system_metrics,
                "feature_flags": self._get_feature_flags(),
                "configuration": self._get_configuration_status()
            }

            span.set_attributes({
                "health.overall_status": overall_status,
                "health.response_time_ms": response_time_ms,
                "health.redis_status": redis_health["status"],
                "health.ouvidoria_status": ouvidoria_health["status"],
                "health.staging_status": staging_health["status"]
            })

            return health_data

    def _check_redis_health(self) -> Dict[str, Any]:
        """Check Redis connectivity with a set/get round trip."""
        with tracer.start_as_current_span("health.redis_check") as span:
            try:
                start_time = time.time()

                if not self.redis_service.ping():
                    raise Exception("Redis ping failed")

                test_key = "health_check_test"
                test_value = f"test_{int(time.time())}"

                self.redis_service.set_with_ttl(test_key, test_value, 10)
                retrieved_value = self.redis_service.get(test_key)
                self.redis_service.delete(test_key)

                if retrieved_value != test_value:
                    raise Exception("Redis set/get test failed")

                response_time = round((time.time() - start_time) * 1000, 2)

                span.set_attributes({
                    "redis.status": "healthy",
                    "redis.response_time_ms": response_time
                })

                return {
                    "status": "healthy",
                    "response_time_ms": response_time,
                    "last_check": _now()
                }

            except Exception as e:
                span.set_attribute("redis.status", "unhealthy")
                span.record_exception(e)

                return {
                    "status": "unhealthy",
                    "error": str(e),
                    "last_check": _now()
                }

    def _check_ouvidoria_health(self) -> Dict[str, Any]:
        """Check that the ouvidoria API answers."""
        with tracer.start_as_current_span("health.ouvidoria_check") as span:
            start_time = time.time()
            reachable = self.ouvidoria_client.ping()
            response_time = round((time.time() - start_time) * 1000, 2)

            span.set_attribute("ouvidoria.status", "healthy" if reachable else "unhealthy")

            health_info = {
                "status": "healthy" if reachable else "unhealthy",
                "response_time_ms": response_time,
                "base_url": self.ouvidoria_client.base_url,
                "last_check": _now()
            }
            if not reachable:
                health_info["error"] = "Ouvidoria API unreachable"
            return health_info

    def _check_staging_health(self) -> Dict[str, Any]:
        """Check that the media staging directory is writable."""
        root = self.staging.root
        writable = root.is_dir() and os.access(root, os.W_OK)

        health_info = {
            "status": "healthy" if writable else "unhealthy",
            "last_check": _now()
        }
        if writable:
            disk = psutil.disk_usage(str(root))
            health_info["free_gb"] = round(disk.free / 1024 / 1024 / 1024, 2)
        else:
            health_info["error"] = "Media staging directory is not writable"
        return health_info

    def _get_system_metrics(self) -> Dict[str, Any]:
        """Get basic system performance metrics."""
        try:
            cpu_percent = psutil.cpu_percent(interval=0.1)

            memory = psutil.virtual_memory()
            memory_usage_mb = round(memory.used / 1024 / 1024, 2)
            memory_total_mb = round(memory.total / 1024 / 1024, 2)

            disk = psutil.disk_usage('/')
            disk_usage_gb = round(disk.used / 1024 / 1024 / 1024, 2)
            disk_total_gb = round(disk.total / 1024 / 1024 / 1024, 2)

            return {
                "cpu_percent": cpu_percent,
                "memory": {
                    "used_mb": memory_usage_mb,
                    "total_mb": memory_total_mb,
                    "percent": memory.percent
                },
                "disk": {
                    "used_gb": disk_usage_gb,
                    "total_gb": disk_total_gb,
                    "percent": round((disk.used / disk.total) * 100, 2)
                },
                "load_average": list(os.getloadavg()) if hasattr(os, 'getloadavg') else None
            }
        except Exception as e:
            return {
                "error": f"Failed to collect system metrics: {str(e)}"
            }

    def _get_feature_flags(self) -> Dict[str, bool]:
        """Get current feature flag status."""
        return {
            "docs_enabled": os.getenv('DOCS_ENABLED', 'true').lower() == 'true',
            "otel_enabled": os.getenv('OTEL_ENABLED', 'true').lower() == 'true'
        }

    def _get_configuration_status(self) -> Dict[str, Any]:
        """Get configuration validation status."""
        config_status = {
            "redis_configured": bool(os.getenv('REDIS_URL')),
            "ouvidoria_api_configured": bool(os.getenv('OUVIDORIA_API_BASE')),
            "jwt_public_key_configured": bool(os.getenv('JWT_PUBLIC_KEY')),
            "environment": os.getenv('ENVIRONMENT', 'development')
        }

        critical_configs = ['redis_configured', 'jwt_public_key_configured']
        config_status["all_critical_configured"] = all(
            config_status[config] for config in critical_configs
        )

        return config_status

    def _determine_overall_status(self, dependency_statuses: list) -> str:
        """Determine overall system status based on dependency health."""
        if all(status == "healthy" for status in dependency_statuses):
            return "healthy"
        elif any(status == "healthy" for status in dependency_statuses):
            return "degraded"
        else:
            return "unhealthy"
