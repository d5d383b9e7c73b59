# Columns of the medical_records table
NUMERIC_FIELDS = ("height", "initial_weight", "current_weight")
ENCRYPTED_FIELDS = ("allergies", "chronic_diseases", "emergency_contact_phone")
PLAIN_FIELDS = ("blood_type", "emergency_contact_name")

RECORD_FIELDS = PLAIN_FIELDS + NUMERIC_FIELDS + ENCRYPTED_FIELDS
