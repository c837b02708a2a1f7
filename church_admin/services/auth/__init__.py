from .firebase_service import (
    extract_user_info_from_claims,
    get_firestore_client,
    verify_firebase_id_token,
)
