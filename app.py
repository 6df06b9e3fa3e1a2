from dotenv import load_dotenv
import logging

from api.routes import create_app

load_dotenv()

logger = logging.getLogger(__name__)

app = create_app()

if __name__ == "__main__":
    # Log startup
    logger.info("Starting Flask server...")
    app.run(debug=True, port=8000)
