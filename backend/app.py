from flask import Flask, jsonify, request
from flask_cors import CORS
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from dotenv import load_dotenv
import os
import sys
import logging
from pathlib import Path

# Add backend directory to Python path if running from project root
current_dir = Path(__file__).parent.resolve()
if str(current_dir) not in sys.path:
    sys.path.insert(0, str(current_dir))

load_dotenv()

# Import route blueprints
from learning.routes import learning_bp

from config.posthog import flush_posthog
from config.text import print_text_config

# Import rate limit configuration
from config.rate_limit import RateLimitConfig

app = Flask(__name__)

# The learning endpoint is called server-to-server by the chat agent and by
# the owner app's feedback buttons.
allowed_origins = [
    origin.strip()
    for origin in os.getenv(
        'ALLOWED_ORIGINS',
        'http://localhost:3000,http://localhost:5173,http://localhost:8081'
    ).split(',')
    if origin.strip()
]

CORS(app,
     origins=allowed_origins,
     supports_credentials=True,
     allow_headers=['Content-Type', 'Authorization'],
     methods=['GET', 'POST', 'OPTIONS'])

# Configure rate limiting
# OPTIONS is always exempt (CORS preflight).
limiter = Limiter(
    app=app,
    key_func=get_remote_address,
    storage_uri=RateLimitConfig.get_storage_uri(),
    default_limits=RateLimitConfig.DEFAULT_LIMITS,
    default_limits_exempt_when=lambda: request.method == 'OPTIONS'
)

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

print_text_config()


@app.after_request
def after_request_flush_posthog(response):
    """Flush PostHog events after each request so learning analytics are sent immediately."""
    flush_posthog()
    return response

# Log rate limiting configuration
if RateLimitConfig.is_production():
    logger.info(f"Rate limiting: Using Redis at {RateLimitConfig.REDIS_URL}")
else:
    logger.warning("Rate limiting: Using in-memory storage (development only)")

# Register blueprints
limiter.limit(RateLimitConfig.LEARNING_LIMIT)(learning_bp)
app.register_blueprint(learning_bp)


@app.route('/health', methods=['GET'])
def health():
    return jsonify({'status': 'ok', 'message': 'Learning backend is running'})


if __name__ == '__main__':
    app.run(debug=True, port=int(os.getenv('PORT', 5000)))
