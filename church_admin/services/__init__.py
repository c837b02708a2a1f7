# Services package (external integrations)
from .auth import extract_user_info_from_claims, get_firestore_client, verify_firebase_id_token
