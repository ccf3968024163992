class DirectLagsError(Exception):
    """Base exception for the library."""
    pass

class DataValidationError(DirectLagsError):
    """Raised when the raw table is empty, malformed or missing named columns."""
    pass

class SpecMismatchError(DirectLagsError, ValueError):
    """Raised when the lag spec does not cover exactly the predictor columns of every horizon."""
    pass

class InvalidLagError(SpecMismatchError):
    """Raised when a lag offset is negative or not an integer."""
    pass

class InvalidHorizonError(DirectLagsError, ValueError):
    """Raised when a forecast horizon is not a positive integer."""
    pass

class DateAlignmentError(DirectLagsError, ValueError):
    """Raised when dates do not line up with the raw table rows or the stated frequency."""
    pass

class EmptyResultWarning(UserWarning):
    """Issued when a horizon's table keeps no predictor columns after filtering."""
    pass
