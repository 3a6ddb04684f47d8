"""Exception types shared across the tracker."""


class CalorieTrackerError(Exception):
    """Base error for the calorie tracker."""


class ValidationError(CalorieTrackerError, ValueError):
    """Raised when a mutation is missing or carries invalid fields."""


class StorageQuotaExceededError(CalorieTrackerError):
    """Raised when local storage cannot hold another write."""


class NutritionApiError(CalorieTrackerError):
    """Raised when the remote nutrition API rejects or fails a request."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class FoodAnalysisError(CalorieTrackerError):
    """Raised when the analysis model returns no usable result."""
