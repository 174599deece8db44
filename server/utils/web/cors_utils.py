from flask import jsonify, request
import os

FRONTEND_URL = os.getenv("FRONTEND_URL")

def create_cors_response(success=True):
    """Create a Flask response with proper CORS headers for preflight requests"""
    resp = jsonify(success=success)
    # Reflect the caller's origin, falling back to the configured admin frontend
    origin = request.headers.get('Origin', FRONTEND_URL)
    if origin:
        resp.headers.add('Access-Control-Allow-Origin', origin)
    resp.headers.add('Access-Control-Allow-Headers', 'Content-Type, X-Admin-Token, X-Requested-With, Authorization')
    resp.headers.add('Access-Control-Allow-Methods', 'GET, POST, OPTIONS')
    resp.headers.add('Access-Control-Allow-Credentials', 'true')
    return resp
