from .mistake_service import MistakeTrackingService
from .review_service import ReviewService

__all__ = ["MistakeTrackingService", "ReviewService"]
