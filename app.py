import logging
import os

from dotenv import load_dotenv
from flask import (
    Flask,
    abort,
    g,
    jsonify,
    request,
    send_from_directory,
    session,
)
from flask_wtf.csrf import generate_csrf

from store import store
from routes import NO_USER_MESSAGE, json_error, record_store_error_response
from routes.auth import PUBLIC_ENDPOINTS, auth_bp
from routes.edits import edits_bp
from routes.ideas import ideas_bp
from routes.milestones import milestones_bp
from routes.tasks import tasks_bp
from routes.today import today_bp
from services.identity_service import IdentityError
from services.record_store import MissingConfigurationError, RecordStoreError
from services.user_service import load_user

load_dotenv()


# Initialize Flask app
app = Flask(__name__, static_folder=None)
app.config["SECRET_KEY"] = os.environ.get("SECRET_KEY", "dev-secret-key")
app.config["RECORD_STORE_BASE_ID"] = os.environ.get("RECORD_STORE_BASE_ID")
app.config["RECORD_STORE_API_KEY"] = os.environ.get("RECORD_STORE_API_KEY")
app.config.setdefault("RECORD_STORE_API_URL", os.environ.get("RECORD_STORE_API_URL"))
app.config.setdefault("RECORD_STORE_TIMEOUT", os.environ.get("RECORD_STORE_TIMEOUT", 20))
app.config.setdefault("IDENTITY_PROVIDER", os.environ.get("IDENTITY_PROVIDER"))
for key in (
    "IDENTITY_VERIFY_URL",
    "IDENTITY_SERVICE_SID",
    "IDENTITY_ACCOUNT_SID",
    "IDENTITY_AUTH_TOKEN",
):
    app.config.setdefault(key, os.environ.get(key))
app.config.setdefault(
    "SPA_BUILD_DIR",
    os.path.join(app.root_path, os.environ.get("SPA_BUILD_DIR", "build")),
)

store.init_app(app)

app.register_blueprint(auth_bp)
app.register_blueprint(ideas_bp)
app.register_blueprint(tasks_bp)
app.register_blueprint(today_bp)
app.register_blueprint(milestones_bp)
app.register_blueprint(edits_bp)

logging.basicConfig(level=logging.INFO)


# User Authentication
# ------------------------------
login_exempt_routes = ["health", "csrf_token", "spa"] + list(PUBLIC_ENDPOINTS)


@app.before_request
def require_login():
    """Every API route requires a User logged in, except the ones in login_exempt_routes

    Runs before every request and loads the User stored in session into g.user,
    so the routes can pass it explicitly to the services.

    Returns:
        A 401 JSON response when no user is found in session
    """
    g.user = None
    if request.endpoint in login_exempt_routes:
        return None
    user_id = session.get("user_id")
    if user_id:
        g.user = load_user(store.client, user_id)
        if g.user is None:
            session.clear()
    if g.user is None and request.endpoint:
        return json_error(NO_USER_MESSAGE, status=401)


# Errors
# ------------------------------
@app.errorhandler(MissingConfigurationError)
def handle_missing_configuration(error):
    app.logger.error("Record store is not configured: %s", error)
    return json_error("Missing record store credentials.", status=503)


@app.errorhandler(RecordStoreError)
def handle_record_store_error(error):
    return record_store_error_response(error, "The record store request failed.")


@app.errorhandler(IdentityError)
def handle_identity_error(error):
    return json_error(str(error), status=error.status_code or 400)


@app.errorhandler(PermissionError)
def handle_permission_error(error):
    return json_error(str(error) or "You do not have access to that record.", status=403)


@app.route("/api/health")
def health():
    return jsonify({"success": True, "status": "ok"})


@app.route("/api/csrf")
def csrf_token():
    return jsonify({"success": True, "csrf_token": generate_csrf()})


# Single page application
# ------------------------------
@app.route("/", defaults={"path": ""})
@app.route("/<path:path>")
def spa(path):
    """Serve files of the built SPA, falling back to index.html for client routes."""
    if path == "api" or path.startswith("api/"):
        return json_error("Not found.", status=404)
    build_dir = app.config["SPA_BUILD_DIR"]
    if path and os.path.isfile(os.path.join(build_dir, path)):
        return send_from_directory(build_dir, path)
    if not os.path.isfile(os.path.join(build_dir, "index.html")):
        abort(404)
    return send_from_directory(build_dir, "index.html")


if __name__ == "__main__":
    app.run(port=int(os.environ.get("PORT", 3000)), debug=True)
