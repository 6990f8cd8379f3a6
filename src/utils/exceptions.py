class VacantBuildingException(Exception):
    """Base Exception Class"""
    pass
class LoadError(VacantBuildingException):
    """Error class for when the neighborhoods file or the violations feed can't be loaded"""
    pass
class ConfigError(LoadError):
    """Config Error, e.g. a missing app token"""
    pass
class ParseError(VacantBuildingException):
    """Error for a numeric or date field that doesn't parse"""
    pass
class FilterError(VacantBuildingException):
    """Error for malformed filter criteria"""
    pass
