# src/direct_lags/features.py
import re
from typing import Optional, Tuple

DEFAULT_LAG_TEMPLATE = "{feature}_lag_{lag}"


def lag_column_name(feature: str, lag: int, template: str = DEFAULT_LAG_TEMPLATE) -> str:
    """Generated predictor column for `feature` shifted by `lag` rows."""
    return template.format(feature=feature, lag=int(lag))

def _template_regex(template: str) -> re.Pattern:
    pattern = re.escape(template)
    pattern = pattern.replace(re.escape("{feature}"), r"(?P<feature>.+)")
    pattern = pattern.replace(re.escape("{lag}"), r"(?P<lag>\d+)")
    return re.compile(f"^{pattern}$")

def parse_lag_column(name: str, template: str = DEFAULT_LAG_TEMPLATE) -> Optional[Tuple[str, int]]:
    """
    Recovers (feature, lag) from a generated column name.

    Returns None for names the template cannot have produced, such as
    outcome or group columns. Feature names that themselves contain the
    template's separator still parse, because the lag is matched last.
    """
    match = _template_regex(template).match(name)
    if match is None:
        return None
    return match.group("feature"), int(match.group("lag"))
