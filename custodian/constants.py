"""
Custodian Constants

This module consolidates all global constants and environment configuration
used throughout the codebase. Constants are organized by category for easy
reference and maintenance.
"""
import ast

from dotenv import dotenv_values

# =============================================================================
# ENVIRONMENT CONFIGURATION
# =============================================================================
# Load environment variables once at module import
_config = dotenv_values(".env")

LOGGER_DEFAULTS = {
    'LOG_LEVEL':                       'INFO',
    'LOG_FORMAT':                      '%(asctime)s - %(levelname)s - %(name)s - %(message)s',
    'LOG_DATE_FORMAT':                 '%Y-%m-%dT%H:%M:%S',
    'LOG_CONSOLE_HIGHLIGHTING':        'True',
    'LOG_FILE_OUTPUT':                 'False',
}

LOG_MAX_FILE_SIZE = 10 * 1024 * 1024 # 10MB
LOG_BACKUP_COUNT = 5


# ==================================================================================
# TIME
# ==================================================================================
SECONDS_PER_DAY = 24 * 60 * 60
LIMIT_PERIOD_SECONDS = SECONDS_PER_DAY  # Rolling window length


# ==================================================================================
# UNITS
# ==================================================================================
# Budget amounts are integers in the smallest unit of the budget asset (wei).
WEI_PER_FINNEY = 10 ** 15
WEI_PER_ETHER = 10 ** 18


# ==================================================================================
# TOP-UP LIMIT BOUNDS
# ==================================================================================
# Every initialized, submitted and confirmed top-up limit must stay in this range.
MIN_TOP_UP = 1 * WEI_PER_FINNEY
MAX_TOP_UP = 500 * WEI_PER_FINNEY


# ==================================================================================
# ADDRESSES
# ==================================================================================
ZERO_ADDRESS = '0x' + '00' * 20

# Asset identifier meaning "the budget unit itself" (no conversion needed)
BASE_ASSET = ZERO_ADDRESS


# ==================================================================================
# AUDIT SUBJECTS
# ==================================================================================
SUBJECT_WHITELIST = 'whitelist'
SUBJECT_WHITELIST_ADDITION = 'whitelist_addition'
SUBJECT_WHITELIST_REMOVAL = 'whitelist_removal'
SUBJECT_SPEND_LIMIT = 'spend_limit'
SUBJECT_TOP_UP_LIMIT = 'top_up_limit'
SUBJECT_TRANSFER = 'transfer'
SUBJECT_TOP_UP = 'top_up'
SUBJECT_OWNERSHIP = 'ownership'


# ==================================================================================
# CONFIGURATION WRAPPERS
# ==================================================================================
class ConfigString(str):
    """
    String subclass that stores a default value.
    """
    def __new__(cls, value, default):
        obj = str.__new__(cls, value)
        obj._default = default
        return obj

    def default(self):
        return self._default

class ConfigBool(int):
    """
    Int subclass acting as a boolean that stores a default value.
    """
    def __new__(cls, value, default):
        obj = int.__new__(cls, bool(value))
        obj._default = default
        return obj

    def default(self):
        return self._default

    def __repr__(self):
        return str(bool(self))

    def __str__(self):
        return str(bool(self))

    def __eq__(self, other):
        return bool(self) == other

    __hash__ = int.__hash__


# ==================================================================================
# DYNAMIC CONFIGURATION LOADING
# ==================================================================================
namespace = globals()

def parse_bool(v):
    """
    Convert "True"/"False" (any casing, with surrounding whitespace) into bool.
    Avoids exceptions by only calling ast.literal_eval for known literals.
    """
    if not isinstance(v, str):
        return v
    s = v.strip()
    if not s:
        return v
    if s.casefold() in {"true", "false"}:
        return ast.literal_eval(s.title())
    return v

for key, default_raw in LOGGER_DEFAULTS.items():
    # dotenv_values returns strings or None. None is treated as missing.
    raw = _config.get(key)
    value_raw = default_raw if raw is None else raw

    value = parse_bool(value_raw)
    default_val = parse_bool(default_raw)

    if isinstance(value, bool):
        namespace[key] = ConfigBool(value, default_val)
    else:
        namespace[key] = ConfigString(value_raw, default_val)
