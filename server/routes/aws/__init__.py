from flask import Blueprint

bp = Blueprint('aws', __name__, url_prefix='/aws')

from . import credential_routes

bp.register_blueprint(credential_routes.credentials_bp)
