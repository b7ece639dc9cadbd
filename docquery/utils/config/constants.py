"""
Central constants for the docquery package.

Configuration keys, file names and operator names that are shared between
the config layer and the query engine live here.
"""

# Configuration file
DEFAULT_CONFIG_FILE = "query_config.json"
CONFIG_FILE_ENV_VAR = "DOCQUERY_CONFIG_FILE"

# Operators the local evaluator refuses to run
UNSUPPORTED_OFFLINE_OPERATORS = ("$nearSphere",)

# Geo constraints
DEFAULT_MAX_POLYGON_POINTS = 3

# Wire format
QUERY_STRING_JSON_SEPARATORS = (",", ":")
