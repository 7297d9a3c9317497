from .coordinator import ProgressCallback, UploadCoordinator

__all__ = ["UploadCoordinator", "ProgressCallback"]
