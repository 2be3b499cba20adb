"""
Configuration constants for the Pet Adoption Board application.
"""

# Pagination
DEFAULT_PAGE_SIZE = 12

# Listing images
MAX_LISTING_IMAGES = 5
MAX_IMAGE_SIZE_MB = 8
MAX_AVATAR_SIZE_MB = 4
UPLOAD_WORKERS = 5

# Validation
MAX_TITLE_LENGTH = 30
MAX_DESCRIPTION_LENGTH = 150

# Firestore
LISTINGS_COLLECTION = "listings"
USERS_COLLECTION = "users"
CREDENTIALS_COLLECTION = "credentials"

# Storage namespaces
LISTING_IMAGES_PREFIX = "listings"
AVATARS_PREFIX = "avatars"

# Drafts (editing sessions)
DRAFT_TTL_SECONDS = 60 * 60

# Themes
THEMES = (
    "light",
    "dark",
    "cyberpunk",
    "aqua",
    "valentine",
    "forest",
    "caramellatte",
    "dracula",
    "lofi",
    "lemonade",
    "nord",
)
DEFAULT_THEME = "light"

# Default values
DEFAULT_OWNER_NAME = "User"
