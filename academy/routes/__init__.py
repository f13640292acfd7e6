"""Routes package for the academy application."""


def register_routes(app):
    """Register all route blueprints with the application."""
    from .auth import auth_bp
    from .lexicon import lexicon_bp
    from .portal import portal_bp
    from .applications import applications_bp
    from .admin import admin_bp

    app.register_blueprint(auth_bp, url_prefix='/api/auth')
    app.register_blueprint(lexicon_bp, url_prefix='/api/lexicon')
    app.register_blueprint(portal_bp, url_prefix='/api/portal')
    app.register_blueprint(applications_bp, url_prefix='/api/applications')
    app.register_blueprint(admin_bp, url_prefix='/api/admin')

    @app.route('/api/health', methods=['GET'])
    def api_health():
        return {'status': 'ok'}, 200
