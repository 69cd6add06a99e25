import os
import logging
import sys
import argparse
from datetime import datetime, timezone
from dotenv import load_dotenv
from flask import Flask, request, jsonify
from flask_cors import CORS
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address

# Load environment variables
load_dotenv()

# Set up logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[
        logging.StreamHandler(sys.stdout)
    ]
)
logger = logging.getLogger('seo_health')

# Initialize Flask app
app = Flask(__name__)
CORS(app)  # Enable CORS for frontend integration
app.secret_key = os.environ.get('SECRET_KEY', os.urandom(24))

# Initialize Celery
from celery_config import make_celery
celery = make_celery(app)

from data_access import create_scan, get_scan
from domain_utils import normalize_url
from highlight_keywords import highlight_keywords_with_placements
from scan_config import describe_configuration
from tasks import run_seo_scan, start_background_scan

limiter = Limiter(
    key_func=get_remote_address,
    app=app,
    default_limits=["200 per day", "50 per hour"],
    storage_uri="memory://"  # Use memory for rate limiting
)


def _keyword_list(value):
    if not value:
        return []
    if isinstance(value, str):
        value = value.split(',')
    return [str(keyword).strip() for keyword in value if str(keyword).strip()]


@app.route('/api/seo-scan', methods=['POST'])
@limiter.limit("10 per hour")
def start_seo_scan():
    data = request.get_json(silent=True) or {}
    url = (data.get('url') or '').strip()
    if not url:
        return jsonify({"status": "error", "message": "A URL is required"}), 400

    url = normalize_url(url)
    keywords = _keyword_list(data.get('keywords'))
    scan = create_scan(url)

    try:
        run_seo_scan.delay(scan.id, url, keywords)
        app.logger.info(f"Dispatched SEO scan {scan.id} for {url}")
    except Exception as e:
        # No broker reachable: run the scan in this process instead
        app.logger.error(f"Could not enqueue scan {scan.id}: {str(e)}. Running it in a background thread")
        start_background_scan(scan.id, url, keywords)

    return jsonify({"scan_id": scan.id, "status": scan.status.value}), 202


@app.route('/api/seo-scan/<scan_id>')
@limiter.exempt
def get_seo_scan(scan_id):
    scan = get_scan(scan_id)
    if scan is None:
        return jsonify({"status": "not_found", "message": "Scan not found"}), 404
    return jsonify(scan.to_dict())


@app.route('/api/highlight', methods=['POST'])
def highlight():
    data = request.get_json(silent=True) or {}
    content = data.get('content')
    if not isinstance(content, str):
        return jsonify({"status": "error", "message": "content must be a string"}), 400
    try:
        word_count = int(data.get('word_count') or len(content.split()))
    except (TypeError, ValueError):
        return jsonify({"status": "error", "message": "word_count must be a number"}), 400

    highlighted, placements = highlight_keywords_with_placements(
        content, _keyword_list(data.get('keywords')), word_count
    )
    return jsonify({
        "content": highlighted,
        "highlights": [
            {
                "keyword_index": placement.keyword_index,
                "char_offset": placement.char_offset,
                "paragraph_index": placement.paragraph_index,
            }
            for placement in placements
        ],
    })


@app.route('/health')
def health_check():
    return jsonify({
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "providers": describe_configuration(),
    })


if __name__ == '__main__':
    parser = argparse.ArgumentParser(description='SEO Health Scan API')
    parser.add_argument('--port', type=int, default=5000, help='Port to run the server on')
    args = parser.parse_args()

    try:
        app.run(debug=True, port=args.port)
    except OSError as e:
        if 'Address already in use' in str(e):
            logger.error(f"Port {args.port} is already in use. Try a different port.")
        else:
            raise
