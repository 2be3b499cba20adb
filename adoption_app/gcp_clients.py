import os
import logging
from google.cloud import storage
from google.cloud import firestore
from dotenv import load_dotenv

# Load environment variables
load_dotenv()

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

# Configuration
BUCKET_NAME = os.getenv("BUCKET_NAME", "pet-adoption-board-images")
PROJECT_ID = os.getenv("GOOGLE_CLOUD_PROJECT", "your-project-id")
SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret-change-me")
PREFERENCES_PATH = os.getenv("PREFERENCES_PATH", os.path.expanduser("~/.pet_adoption_board.json"))

# Initialize Clients
storage_client = None
firestore_client = None

def init_services():
    global storage_client, firestore_client

    logger.info("Initializing services...")

    # Storage
    try:
        storage_client = storage.Client(project=PROJECT_ID)
        logger.info(f"Successfully initialized Storage client. Bucket: {BUCKET_NAME}")
    except Exception as e:
        logger.error(f"Failed to initialize Storage client: {e}")

    # Firestore
    try:
        firestore_client = firestore.Client(project=PROJECT_ID)
        logger.info("Successfully initialized Firestore client")
    except Exception as e:
        logger.error(f"Failed to initialize Firestore client: {e}")
