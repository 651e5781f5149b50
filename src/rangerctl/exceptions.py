class ConfigurationError(Exception):
    """Raised for fatal setup problems such as bad settings or an unresolvable service id"""
    pass
