#Purpose: Environment driven configuration.
#Reads a local .env (if present) once, then exposes plain module constants.
#
#Example .env:
#FIRESTORE_PROJECT_ID=groza-app
#FIRESTORE_API_KEY=...
#FIRESTORE_TIMEOUT=5
#LOG_LEVEL=INFO

import os

from dotenv import load_dotenv

load_dotenv()

FIRESTORE_PROJECT_ID = os.getenv("FIRESTORE_PROJECT_ID")
FIRESTORE_API_KEY = os.getenv("FIRESTORE_API_KEY")
FIRESTORE_TIMEOUT = float(os.getenv("FIRESTORE_TIMEOUT", "5"))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
