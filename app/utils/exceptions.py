class FeedException(Exception):
    """Base exception for infrastructure failures"""
    pass


class BlobStoreError(FeedException):
    """Blob store upload errors"""
    pass


class ClassifierError(FeedException):
    """Credibility classifier call failed, timed out or returned an unusable payload"""
    pass
