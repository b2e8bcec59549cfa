from .factory import TAGS_METADATA, build_application
from .startup import enforce_jwt_strength

__all__ = [
    "TAGS_METADATA",
    "build_application",
    "enforce_jwt_strength",
]
