"""
Participa DF Gateway - Flask Application Entry Point

This module initializes the Flask application with OpenAPI 3.0 support,
configures middleware, and wires the services used by the complaint
("manifestação") intake gateway of the Ouvidoria do Distrito Federal.
"""

import os
import tempfile
from datetime import datetime, timezone
from typing import Any, Dict, Optional
from flask import jsonify
from flask_openapi3 import OpenAPI, Info, Tag
from observability.config import setup_observability
from observability.middleware import add_observability_middleware

# Import middleware and utilities
from middleware.cors import configure_cors
from middleware.error_handler import ErrorHandlerMiddleware, register_custom_error_handlers
from middleware.validation import ValidationMiddleware, openapi_validation_error
from middleware.auth import AuthMiddleware
from domain.media import MediaLimits
from services.hal import create_hal_formatter
from services.redis import RedisService
from services.sessions import CompositionStore
from services.staging import AttachmentStaging
from services.ouvidoria import OuvidoriaClient
from services.geocoding import GeocodingService
from services.auth import AuthService
from services.health import HealthCheckService

# Initialize observability first
setup_observability()

# OpenAPI info
info = Info(
    title="Participa DF Gateway",
    version="1.0.0",
    description="Multi-modal complaint intake for the Ouvidoria do Distrito Federal with HATEOAS Level-3 support"
)

# API tags for organization
tags = [
    Tag(name="Manifestations", description="Complaint composition and submission"),
    Tag(name="Intake", description="Sensitive data screening and media capture settings"),
    Tag(name="Locations", description="Place search and reverse geocoding"),
    Tag(name="Protocols", description="Follow up of submitted manifestations"),
    Tag(name="Admin", description="Manifestation listing for the ouvidoria staff"),
    Tag(name="Health", description="System health and status")
]


def _env_flag(name: str, default: str = 'true') -> bool:
    return os.getenv(name, default).lower() == 'true'


def load_config() -> Dict[str, Any]:
    """Read the gateway configuration from the environment."""
    environment = os.getenv('ENVIRONMENT', 'development')
    return {
        'ENVIRONMENT': environment,
        'DEBUG': environment == 'development',
        'DOCS_ENABLED': _env_flag('DOCS_ENABLED'),
        'OTEL_ENABLED': _env_flag('OTEL_ENABLED'),

        # API configuration
        'BASE_URL': os.getenv('BASE_URL', 'http://localhost:5000'),

        # Ouvidoria API and geocoder
        'OUVIDORIA_API_BASE': os.getenv('OUVIDORIA_API_BASE', 'https://api.simplificagov.com'),
        'OUVIDORIA_API_TIMEOUT': float(os.getenv('OUVIDORIA_API_TIMEOUT', '30')),
        'GEOCODER_BASE_URL': os.getenv('GEOCODER_BASE_URL', 'https://photon.komoot.io'),

        # Session storage
        'REDIS_URL': os.getenv('REDIS_URL', ''),
        'REDIS_TOKEN': os.getenv('REDIS_TOKEN', ''),
        'COMPOSITION_TTL_SECONDS': int(os.getenv('COMPOSITION_TTL_SECONDS', '86400')),

        # Media staging
        'MEDIA_STAGING_DIR': os.getenv(
            'MEDIA_STAGING_DIR',
            os.path.join(tempfile.gettempdir(), 'participa-df-media')
        ),
        'MAX_ATTACHMENT_BYTES': int(os.getenv('MAX_ATTACHMENT_BYTES', str(25 * 1024 * 1024))),
        'MAX_ATTACHMENTS': int(os.getenv('MAX_ATTACHMENTS', '10')),

        # Abuse protection
        'SUBMISSION_RATE_LIMIT': int(os.getenv('SUBMISSION_RATE_LIMIT', '10')),

        # Admin tokens
        'JWT_PUBLIC_KEY': os.getenv('JWT_PUBLIC_KEY'),
        'JWT_PRIVATE_KEY': os.getenv('JWT_PRIVATE_KEY'),
    }


def create_app(config_overrides: Optional[Dict[str, Any]] = None, **services) -> OpenAPI:
    """
    Build the gateway application.

    Args:
        config_overrides: Values replacing the environment configuration
        **services: Prebuilt services (redis_service, composition_store,
            staging, ouvidoria_client, geocoding_service, auth_service,
            health_service) used instead of the default ones

    Returns:
        Configured application
    """
    config = load_config()
    config.update(config_overrides or {})

    # Create Flask app with OpenAPI
    app = OpenAPI(
        __name__,
        info=info,
        doc_ui=config['DOCS_ENABLED'],
        validation_error_status=400,
        validation_error_callback=openapi_validation_error
    )
    app.config.update(config)

    # Multipart bodies carry one file plus a few form fields
    app.config['MAX_CONTENT_LENGTH'] = config['MAX_ATTACHMENT_BYTES'] + 1024 * 1024

    # Add observability middleware
    add_observability_middleware(app)

    # Initialize services
    redis_service = services.get('redis_service') or RedisService(
        config['REDIS_URL'],
        config['REDIS_TOKEN']
    )
    composition_store = services.get('composition_store') or CompositionStore(
        redis_service,
        config['COMPOSITION_TTL_SECONDS']
    )
    staging = services.get('staging') or AttachmentStaging(config['MEDIA_STAGING_DIR'])
    ouvidoria_client = services.get('ouvidoria_client') or OuvidoriaClient(
        config['OUVIDORIA_API_BASE'],
        timeout=config['OUVIDORIA_API_TIMEOUT']
    )
    geocoding_service = services.get('geocoding_service') or GeocodingService(config['GEOCODER_BASE_URL'])
    auth_service = services.get('auth_service') or AuthService(
        config['JWT_PRIVATE_KEY'],
        config['JWT_PUBLIC_KEY']
    )
    health_service = services.get('health_service') or HealthCheckService(
        redis_service,
        ouvidoria_client,
        staging
    )

    # Initialize middleware
    hal_formatter = create_hal_formatter(config['BASE_URL'])
    validation_middleware = ValidationMiddleware(config['BASE_URL'])
    auth_middleware = AuthMiddleware(auth_service, hal_formatter)
    ErrorHandlerMiddleware(app, config['BASE_URL'])

    # Configure CORS
    configure_cors(app)

    # Register custom error handlers
    register_custom_error_handlers(app, hal_formatter)

    # Make services available to routes
    app.redis_service = redis_service
    app.composition_store = composition_store
    app.staging = staging
    app.ouvidoria_client = ouvidoria_client
    app.geocoding_service = geocoding_service
    app.auth_service = auth_service
    app.health_service = health_service
    app.hal_formatter = hal_formatter
    app.validation_middleware = validation_middleware
    app.auth_middleware = auth_middleware
    app.media_limits = MediaLimits(
        max_bytes=config['MAX_ATTACHMENT_BYTES'],
        max_attachments=config['MAX_ATTACHMENTS']
    )

    # Register routes
    from routes.manifestations import manifestations_bp
    from routes.intake import intake_bp
    from routes.locations import locations_bp
    from routes.protocols import protocols_bp
    from routes.admin import admin_bp

    app.register_api(manifestations_bp)
    app.register_api(intake_bp)
    app.register_api(locations_bp)
    app.register_api(protocols_bp)
    app.register_api(admin_bp)

    @app.get('/api/healthz', tags=[tags[-1]])
    def health_check():
        """Health check with Redis, ouvidoria API and media staging status"""
        health_data = app.health_service.get_comprehensive_health()

        # Degraded is still operational
        status_code = 503 if health_data["status"] == "unhealthy" else 200

        links = {
            'self': hal_formatter.builder.link_builder.build_self_link('/api/healthz'),
            'new-manifestation': hal_formatter.builder.link_builder.build_link(
                '/api/manifestations',
                method='POST',
                content_type='application/json',
                title='New manifestation'
            )
        }
        health_response = hal_formatter.builder.build_resource_response(health_data, links)
        return jsonify(health_response), status_code

    @app.get('/', doc_ui=False)
    def index():
        """API entry point"""
        links = {
            'self': hal_formatter.builder.link_builder.build_self_link('/'),
            'manifestations': hal_formatter.builder.link_builder.build_link(
                '/api/manifestations',
                method='POST',
                content_type='application/json',
                title='Start a manifestation'
            ),
            'protocol': hal_formatter.builder.link_builder.build_link(
                '/api/protocols/{protocol}',
                title='Follow a protocol',
                templated=True
            ),
            'location-search': hal_formatter.builder.link_builder.build_link(
                '/api/locations/search{?q}',
                title='Search places',
                templated=True
            ),
            'health': hal_formatter.builder.link_builder.build_link('/api/healthz', title='Health')
        }
        document = {
            "service": "participa-df-gateway",
            "version": info.version,
            "environment": app.config['ENVIRONMENT'],
            "timestamp": datetime.now(timezone.utc).isoformat()
        }
        if app.config['DOCS_ENABLED']:
            links['docs'] = hal_formatter.builder.link_builder.build_link('/openapi', title='API documentation')
        return jsonify(hal_formatter.builder.build_resource_response(document, links))

    return app


app = create_app()


if __name__ == '__main__':
    app.run(debug=app.config['DEBUG'], host='0.0.0.0', port=int(os.getenv('PORT', '5000')))
