"""
Input Loader Module

Reads the report input file (YAML) and validates it into a ReportConfig.

Expected file layout:

    MailTo:
      - hr@company.com
      - it-onboarding@company.com
    MailAdmin: ops@company.com; backup-ops@company.com
    MailFrom: reports@company.com
    OrganizationalUnits:
      - OU=Users,OU=Brussels,DC=corp,DC=company,DC=com
      - OU=Users,OU=Paris,DC=corp,DC=company,DC=com
    Days: 7

List fields accept a YAML list or a single string separated by commas or semicolons
(OrganizationalUnits strings split on semicolons only, since DNs contain commas).
Every validation failure raises ConfigError naming the offending field, so the
pipeline can abort before the directory is queried.
"""

from pathlib import Path
from typing import Any, Tuple, Union

import yaml

from account_reporting.models import ReportConfig
from account_reporting.logger import get_logger

logger = get_logger(__name__)

FIELD_MAIL_TO = "MailTo"
FIELD_MAIL_ADMIN = "MailAdmin"
FIELD_MAIL_FROM = "MailFrom"
FIELD_SCOPES = "OrganizationalUnits"
FIELD_DAYS = "Days"


class ConfigError(ValueError):
    """Raised when the report input file is missing, unreadable or invalid."""

    def __init__(self, field: str, message: str):
        super().__init__(message)
        self.field = field


def _as_list(value: Any, field: str, split_commas: bool = True) -> Tuple[str, ...]:
    """
    Normalize a YAML list or separated string into a tuple of non-empty strings.

    Strings are split on semicolons and newlines, and on commas unless split_commas
    is False (distinguished names contain commas).
    """
    if value is None:
        return ()
    if isinstance(value, str):
        text = value.replace("\n", ";")
        if split_commas:
            text = text.replace(",", ";")
        items = text.split(";")
    elif isinstance(value, (list, tuple)):
        items = value
    else:
        raise ConfigError(field, f"{field} must be a list or a comma-separated string, got {type(value).__name__}")

    cleaned = []
    for item in items:
        if item is None:
            continue
        if not isinstance(item, str):
            raise ConfigError(field, f"{field} entries must be text, got {type(item).__name__}: {item!r}")
        if item.strip():
            cleaned.append(item.strip())
    return tuple(cleaned)


def _validate_addresses(addresses: Tuple[str, ...], field: str) -> None:
    for address in addresses:
        if "@" not in address:
            raise ConfigError(field, f"{field} contains an invalid email address: {address}")


def _parse_days(value: Any) -> int:
    """Parse the day threshold: a positive whole number, given as number or text."""
    if value is None or (isinstance(value, str) and not value.strip()):
        raise ConfigError(FIELD_DAYS, f"{FIELD_DAYS} is missing from the configuration file")

    if isinstance(value, bool):
        raise ConfigError(FIELD_DAYS, f"{FIELD_DAYS} must be a whole number, got {value!r}")

    if isinstance(value, int):
        days = value
    elif isinstance(value, float) and value.is_integer():
        days = int(value)
    elif isinstance(value, str):
        try:
            days = int(value.strip())
        except ValueError:
            raise ConfigError(FIELD_DAYS, f"{FIELD_DAYS} must be a whole number, got {value!r}") from None
    else:
        raise ConfigError(FIELD_DAYS, f"{FIELD_DAYS} must be a whole number, got {value!r}")

    if days <= 0:
        raise ConfigError(FIELD_DAYS, f"{FIELD_DAYS} must be a positive integer, got {days}")
    return days


def parse_report_config(data: Any) -> ReportConfig:
    """
    Validate an already-parsed mapping into a ReportConfig.

    Args:
        data: Mapping loaded from the YAML file

    Returns:
        ReportConfig instance

    Raises:
        ConfigError: naming the first missing or malformed field
    """
    if not isinstance(data, dict):
        raise ConfigError("<file>", "Configuration file must contain a mapping of settings")

    mail_to = _as_list(data.get(FIELD_MAIL_TO), FIELD_MAIL_TO)
    if not mail_to:
        raise ConfigError(FIELD_MAIL_TO, f"{FIELD_MAIL_TO} is missing or empty in the configuration file")
    _validate_addresses(mail_to, FIELD_MAIL_TO)

    mail_admin = _as_list(data.get(FIELD_MAIL_ADMIN), FIELD_MAIL_ADMIN)
    _validate_addresses(mail_admin, FIELD_MAIL_ADMIN)

    scopes = _as_list(data.get(FIELD_SCOPES), FIELD_SCOPES, split_commas=False)
    if not scopes:
        raise ConfigError(FIELD_SCOPES, f"{FIELD_SCOPES} is missing or empty in the configuration file")

    days = _parse_days(data.get(FIELD_DAYS))

    mail_from = data.get(FIELD_MAIL_FROM)
    if isinstance(mail_from, str) and not mail_from.strip():
        mail_from = None
    if mail_from is not None:
        if not isinstance(mail_from, str) or "@" not in mail_from:
            raise ConfigError(FIELD_MAIL_FROM, f"{FIELD_MAIL_FROM} is not a valid email address: {mail_from!r}")
        mail_from = mail_from.strip()

    return ReportConfig(
        mail_to=mail_to,
        scopes=scopes,
        days=days,
        mail_admin=mail_admin,
        mail_from=mail_from,
    )


def load_report_config(path: Union[str, Path]) -> ReportConfig:
    """
    Load and validate the report input file.

    Args:
        path: Path to the YAML configuration file

    Returns:
        ReportConfig instance

    Raises:
        ConfigError: if the file cannot be read or a field is missing/malformed
    """
    config_path = Path(path)
    logger.info(f"Loading report configuration from {config_path}")

    if not config_path.is_file():
        raise ConfigError("<file>", f"Configuration file not found: {config_path}")

    try:
        with open(config_path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except OSError as e:
        raise ConfigError("<file>", f"Could not read configuration file {config_path}: {str(e)}") from e
    except yaml.YAMLError as e:
        raise ConfigError("<file>", f"Configuration file {config_path} is not valid YAML: {str(e)}") from e

    config = parse_report_config(data)

    logger.info(f"Loaded {len(config.mail_to)} recipient(s), {len(config.mail_admin)} admin address(es), "
                f"{len(config.scopes)} scope(s), day threshold {config.days}")
    return config
