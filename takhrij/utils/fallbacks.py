"""
Fixed user-facing payloads for degraded paths.

Every message here is static so that no provider error text or stack trace
ever reaches a client.
"""

from takhrij.models import CommentaryResponse, NarratorBioResponse

# ==========================================
#  SEARCH
# ==========================================

NO_QUERY_MESSAGE = "❌ No query provided."
FALLBACK_FAILED_MESSAGE = "❌ AI fallback failed. Please try again later."

NO_ARABIC_PLACEHOLDER = "[No Arabic]"

AI_GENERATED_REFERENCE = "AI Generated"
NOT_FOUND_WARNING = (
    "Warning: This phrase/word was not found in any of the 9 primary hadith "
    "collections. Try rephrasing it more accurately or using known matn keywords."
)
SEARCH_TIP = (
    "Search tip: Enter specific keywords (minimum 3 letters each) separated by "
    "spaces; common words like \"and\", \"the\", \"of\" are ignored, and fuzzy "
    "matching helps catch close spellings."
)

# ==========================================
#  COMMENTARY
# ==========================================

NO_COMMENTARY = "No commentary."
NO_CHAIN = "No chain."
NO_EVALUATION = "No evaluation."

RATE_LIMIT_MESSAGE = "Daily AI limit reached. Please try again after 24 hours."
MISSING_FIELD_MESSAGE = "Error: Missing required field."


def missing_field_commentary() -> CommentaryResponse:
    """Returned when a required commentary field is blank."""
    return CommentaryResponse(commentary=MISSING_FIELD_MESSAGE, chain="", evaluation="")


def rate_limited_commentary() -> CommentaryResponse:
    """Returned when the client exhausted its AI quota."""
    return CommentaryResponse(commentary=RATE_LIMIT_MESSAGE, chain="", evaluation="")


def failed_commentary() -> CommentaryResponse:
    """Returned when the model call fails."""
    return CommentaryResponse(commentary=NO_COMMENTARY, chain=NO_CHAIN, evaluation=NO_EVALUATION)


# ==========================================
#  NARRATOR BIO
# ==========================================

NO_NARRATOR_MESSAGE = "No narrator name provided."
BIO_FAILED_MESSAGE = "Error fetching biography."


def missing_name_bio() -> NarratorBioResponse:
    return NarratorBioResponse(bio=NO_NARRATOR_MESSAGE)


def rate_limited_bio() -> NarratorBioResponse:
    return NarratorBioResponse(bio=RATE_LIMIT_MESSAGE)


def failed_bio() -> NarratorBioResponse:
    return NarratorBioResponse(bio=BIO_FAILED_MESSAGE)
