# sheet_omr/scoring_defaults.py
from dataclasses import dataclass

@dataclass(frozen=True)
class RegistrationDefaults:
    # Single source of truth for registration/calibration constants
    choice_fraction: float = 0.9    # choice threshold sits 90% of the way from ink_black to calibration mean
    max_attempts: int = 1000        # hard cap on search-area expansions per corner
    min_contrast: float = 20.0      # patch std-dev below this means "no dark region"

DEFAULTS = RegistrationDefaults()

def apply_overrides(
    choice_fraction: float | None = None,
    max_attempts: int | None = None,
    min_contrast: float | None = None,
) -> RegistrationDefaults:
    # produce an overridden immutable config without mutating DEFAULTS
    return RegistrationDefaults(
        choice_fraction = DEFAULTS.choice_fraction if choice_fraction is None else choice_fraction,
        max_attempts = DEFAULTS.max_attempts if max_attempts is None else max_attempts,
        min_contrast = DEFAULTS.min_contrast if min_contrast is None else min_contrast,
    )
