from flask import Flask, current_app, request, jsonify
from flask_cors import CORS
from config import Config, get_config
from errors import register_error_handlers
from extensions import jwt, bcrypt, limiter
from models import db
from sqlalchemy import text
from datetime import datetime
import logging
from logging.handlers import RotatingFileHandler
import os


# ============================================
# Logging
# ============================================

def setup_logging(app):
    """
    Rotating file logs: app.log for INFO and up, error.log for errors only

    Skipped in debug and testing, where the console is enough.
    """
    if app.debug or app.testing:
        return

    log_dir = app.config['LOG_DIR']
    os.makedirs(log_dir, exist_ok=True)

    formatter = logging.Formatter(
        '[%(asctime)s] %(levelname)s in %(module)s: %(message)s'
    )

    info_handler = RotatingFileHandler(
        os.path.join(log_dir, 'app.log'),
        maxBytes=10240000,  # 10MB
        backupCount=10
    )
    info_handler.setLevel(logging.INFO)
    info_handler.setFormatter(formatter)

    error_handler = RotatingFileHandler(
        os.path.join(log_dir, 'error.log'),
        maxBytes=10240000,  # 10MB
        backupCount=10
    )
    error_handler.setLevel(logging.ERROR)
    error_handler.setFormatter(formatter)

    # Module loggers (auth, tasks, ...) propagate to root
    root_logger = logging.getLogger()
    root_logger.addHandler(info_handler)
    root_logger.addHandler(error_handler)
    root_logger.setLevel(app.config['LOG_LEVEL'])

    app.logger.info('Application startup')


# ============================================
# JWT error responses
# ============================================

def register_jwt_callbacks():

    @jwt.expired_token_loader
    def expired_token_callback(jwt_header, jwt_payload):
        current_app.logger.warning(f"Expired token attempt from: {request.remote_addr}")
        return jsonify({
            'code': 'token_expired',
            'message': 'The token you provided has expired. Please login again.'
        }), 401

    @jwt.invalid_token_loader
    def invalid_token_callback(error):
        current_app.logger.warning(f"Invalid token attempt from: {request.remote_addr}, error: {error}")
        return jsonify({
            'code': 'invalid_token',
            'message': 'The token you provided is not valid.'
        }), 401

    @jwt.unauthorized_loader
    def unauthorized_callback(error):
        return jsonify({
            'code': 'authorization_required',
            'message': 'Unauthorized'
        }), 401


# ============================================
# Request/Response hooks
# ============================================

def register_request_hooks(app):

    @app.before_request
    def log_request():
        if not app.debug:
            app.logger.info(f"Request: {request.method} {request.path} from {request.remote_addr}")

    @app.after_request
    def log_response(response):
        if not app.debug:
            app.logger.info(f"Response: {response.status_code} for {request.method} {request.path}")

        response.headers['X-Content-Type-Options'] = 'nosniff'
        response.headers['X-Frame-Options'] = 'DENY'
        response.headers['Referrer-Policy'] = 'same-origin'

        return response


# ============================================
# Operational routes
# ============================================

def register_core_routes(app):

    @app.route('/health', methods=['GET'])
    @limiter.exempt
    def health_check():
        """Database connectivity check for load balancers/monitoring"""
        try:
            db.session.execute(text('SELECT 1'))
            return jsonify({
                'status': 'healthy',
                'database': 'connected',
                'timestamp': datetime.utcnow().isoformat()
            }), 200
        except Exception as e:
            db.session.rollback()
            app.logger.error(f"Health check failed: {str(e)}")
            return jsonify({
                'status': 'unhealthy',
                'database': 'disconnected'
            }), 503

    @app.route('/')
    def home():
        return jsonify({
            'message': 'ProjeX API',
            'version': app.config['API_VERSION'],
            'endpoints': {
                'health': {'path': '/health', 'methods': ['GET']},
                'auth': {
                    'register': {'path': '/auth/register', 'methods': ['POST']},
                    'login': {'path': '/auth/login', 'methods': ['POST']},
                    'logout': {'path': '/auth/logout', 'methods': ['POST']},
                    'me': {'path': '/auth/me', 'methods': ['GET']}
                },
                'users': {
                    'list': {'path': '/users', 'methods': ['GET']},
                    'detail': {'path': '/users/:id', 'methods': ['GET', 'PUT', 'DELETE']}
                },
                'projects': {
                    'list': {'path': '/projects', 'methods': ['GET', 'POST']},
                    'detail': {'path': '/projects/:id', 'methods': ['GET', 'PUT', 'DELETE']}
                },
                'tasks': {
                    'list': {'path': '/task', 'methods': ['GET', 'POST']},
                    'detail': {'path': '/task/:id', 'methods': ['GET', 'PUT', 'DELETE']}
                },
                'views': {
                    'dashboard': {'path': '/views/dashboard', 'methods': ['GET']},
                    'board': {'path': '/views/board', 'methods': ['GET']},
                    'calendar': {'path': '/views/calendar', 'methods': ['GET']},
                    'reports': {'path': '/views/reports', 'methods': ['GET']}
                }
            }
        })


# ============================================
# Application factory
# ============================================

def create_app(config_class=None, **overrides):
    """
    Build the Flask app

    Refuses to start (ValueError) when the token signing secret is missing.
    """
    app = Flask(__name__)
    app.config.from_object(config_class or get_config())
    app.config.update(overrides)
    Config.validate(app.config)

    CORS(app,
         supports_credentials=True,
         origins=app.config['CORS_ORIGINS'],
         methods=['GET', 'POST', 'PUT', 'DELETE', 'OPTIONS'],
         allow_headers=['Content-Type', 'Authorization'])

    db.init_app(app)
    jwt.init_app(app)
    bcrypt.init_app(app)
    limiter.init_app(app)

    setup_logging(app)
    register_jwt_callbacks()
    register_error_handlers(app, db)
    register_request_hooks(app)
    register_core_routes(app)

    from auth import auth_bp
    app.register_blueprint(auth_bp, url_prefix='/auth')

    from users import users_bp
    app.register_blueprint(users_bp, url_prefix='/users')

    from projects import projects_bp
    app.register_blueprint(projects_bp, url_prefix='/projects')

    from tasks import tasks_bp
    app.register_blueprint(tasks_bp, url_prefix='/task')

    from views import views_bp
    app.register_blueprint(views_bp, url_prefix='/views')

    with app.app_context():
        db.create_all()
        app.logger.info('Database tables ready')

    return app


if __name__ == '__main__':
    # Use gunicorn in production: gunicorn "app:create_app()"
    app = create_app()
    app.run(
        debug=app.config['DEBUG'],
        port=int(os.getenv('FLASK_PORT', 8888)),
        host='0.0.0.0'
    )
