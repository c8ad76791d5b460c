"""
Directory Query Module (READ-ONLY)

This module finds the user accounts created in the last N days under a set of
organizational units (scopes) of an LDAP / Active Directory service.

CRITICAL SAFETY:
- Read-only connections, search operations only
- No writes, modifies, or deletes
- Bind password is never logged

Any object with a `query(scopes, since_days)` method can stand in for the
directory (see DirectoryQuery); LdapDirectory is the production implementation.
"""

import os
import re
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional, Protocol, Sequence

from ldap3 import Server, Connection, SUBTREE, NONE
from ldap3.core.exceptions import LDAPException

from account_reporting.config import (
    LDAP_ATTRIBUTES,
    DEFAULT_LDAP_PAGE_SIZE,
    DEFAULT_LDAP_MAX_WORKERS,
)
from account_reporting.models import AccountRecord, Expiration, NEVER
from account_reporting.logger import get_logger

logger = get_logger(__name__)

# accountExpires values meaning "never expires"
_NEVER_FILETIMES = (0, 0x7FFFFFFFFFFFFFFF)
_FILETIME_EPOCH = datetime(1601, 1, 1)

_MANAGER_CN_RE = re.compile(r"^\s*CN=((?:\\.|[^,])+)", re.IGNORECASE)


class DirectoryError(RuntimeError):
    """Raised when the directory cannot be reached or a search fails."""


class DirectoryQuery(Protocol):
    def query(self, scopes: Sequence[str], since_days: int) -> List[AccountRecord]:
        ...


# ============================================================================
# Attribute parsing
# ============================================================================

def _first(value: Any) -> Any:
    """Return the first value of a multi-valued attribute, or the value itself."""
    if isinstance(value, (list, tuple)):
        return value[0] if value else None
    return value


def _text(value: Any) -> str:
    value = _first(value)
    if value is None:
        return ""
    if isinstance(value, bytes):
        value = value.decode("utf-8", errors="replace")
    return str(value).strip()


def parse_generalized_time(value: Any) -> Optional[datetime]:
    """Parse an LDAP generalized time (e.g. '20260110123000.0Z') to a naive UTC datetime."""
    value = _first(value)
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc).replace(tzinfo=None)
        return value
    text = _text(value)
    try:
        return datetime.strptime(text[:14], "%Y%m%d%H%M%S")
    except ValueError:
        logger.warning(f"Unparseable directory timestamp: {text!r}")
        return None


def parse_account_expires(value: Any) -> Expiration:
    """
    Convert an accountExpires value to an Expiration.

    Accepts the raw Windows FILETIME (int or text) or an already formatted datetime.
    0, 0x7FFFFFFFFFFFFFFF, year 1601 and year 9999 all mean "never".
    """
    value = _first(value)
    if value is None or value == "":
        return NEVER

    if isinstance(value, datetime):
        if value.year <= 1601 or value.year >= 9999:
            return NEVER
        return Expiration.on(value.date())

    try:
        ticks = int(_text(value))
    except ValueError:
        logger.warning(f"Unparseable accountExpires value: {value!r}")
        return NEVER

    if ticks in _NEVER_FILETIMES or ticks < 0:
        return NEVER
    try:
        expires = _FILETIME_EPOCH + timedelta(microseconds=ticks // 10)
    except OverflowError:
        return NEVER
    return Expiration.on(expires.date())


def manager_name(dn: Any) -> str:
    """Reduce a manager DN ('CN=Doe\\, John,OU=Staff,...') to its common name ('Doe, John')."""
    text = _text(dn)
    if not text:
        return ""
    match = _MANAGER_CN_RE.match(text)
    if not match:
        return text
    return re.sub(r"\\(.)", r"\1", match.group(1)).strip()


def record_from_attributes(attributes: Dict[str, Any]) -> AccountRecord:
    """
    Build an AccountRecord from the attributes of one directory entry.

    Missing attributes become empty strings; display name falls back to the account name.
    """
    sam = _text(attributes.get("sAMAccountName"))
    return AccountRecord(
        display_name=_text(attributes.get("displayName")) or sam,
        manager=manager_name(attributes.get("manager")),
        company=_text(attributes.get("company")),
        account_type=_text(attributes.get("employeeType")),
        country=_text(attributes.get("co")),
        expiration=parse_account_expires(attributes.get("accountExpires")),
        sam_account_name=sam,
        mail=_text(attributes.get("mail")),
        created=parse_generalized_time(attributes.get("whenCreated")),
        office_phone=_text(attributes.get("telephoneNumber")),
        mobile_phone=_text(attributes.get("mobile")),
        home_phone=_text(attributes.get("homePhone")),
        ip_phone=_text(attributes.get("ipPhone")),
        fax=_text(attributes.get("facsimileTelephoneNumber")),
        pager=_text(attributes.get("pager")),
        employee_id=_text(attributes.get("employeeID")),
    )


def created_since_filter(since: datetime) -> str:
    """LDAP filter for user objects created at or after `since` (UTC)."""
    stamp = since.strftime("%Y%m%d%H%M%S") + ".0Z"
    return f"(&(objectCategory=person)(objectClass=user)(whenCreated>={stamp}))"


# ============================================================================
# LDAP implementation
# ============================================================================

class LdapDirectory:
    """
    Read-only LDAP directory searched in parallel, one connection per scope.

    Environment Variables:
        LDAP_SERVER: Directory host or URL (required)
        LDAP_USER: Bind account (optional for anonymous bind)
        LDAP_PASSWORD: Bind password
        LDAP_USE_SSL: 'true' to force LDAPS
        LDAP_PAGE_SIZE: Paged search size (default: 500)
        LDAP_MAX_WORKERS: Scopes searched concurrently (default: 4)
    """

    def __init__(
        self,
        server: Optional[str] = None,
        user: Optional[str] = None,
        password: Optional[str] = None,
        use_ssl: Optional[bool] = None,
        page_size: Optional[int] = None,
        max_workers: Optional[int] = None,
        connection_factory: Optional[Callable[[], Any]] = None,
    ):
        self.server = server or os.getenv("LDAP_SERVER", "")
        self.user = user if user is not None else os.getenv("LDAP_USER")
        self.password = password if password is not None else os.getenv("LDAP_PASSWORD")
        if use_ssl is None:
            use_ssl = os.getenv("LDAP_USE_SSL", "").strip().lower() in ("true", "1", "yes")
        self.use_ssl = use_ssl
        self.page_size = page_size or int(os.getenv("LDAP_PAGE_SIZE", DEFAULT_LDAP_PAGE_SIZE))
        self.max_workers = max_workers or int(os.getenv("LDAP_MAX_WORKERS", DEFAULT_LDAP_MAX_WORKERS))
        self._connection_factory = connection_factory or self._connect

    def _connect(self) -> Connection:
        if not self.server:
            raise DirectoryError("LDAP_SERVER environment variable is not set")

        server = Server(self.server, use_ssl=self.use_ssl, get_info=NONE)
        logger.debug(f"Binding to directory {self.server} as {self.user or '(anonymous)'}")
        return Connection(
            server,
            user=self.user or None,
            password=self.password or None,
            auto_bind=True,
            read_only=True,
            raise_exceptions=True,
        )

    def _search_scope(self, scope: str, search_filter: str) -> List[Dict[str, Any]]:
        """Run one paged subtree search and return (dn, attributes) entries."""
        connection = self._connection_factory()
        try:
            entries = []
            results = connection.extend.standard.paged_search(
                search_base=scope,
                search_filter=search_filter,
                search_scope=SUBTREE,
                attributes=LDAP_ATTRIBUTES,
                paged_size=self.page_size,
                generator=True,
            )
            for entry in results:
                if entry.get("type") != "searchResEntry":
                    continue
                entries.append({"dn": entry.get("dn", ""), "attributes": entry.get("attributes", {})})
            logger.info(f"  Scope {scope}: {len(entries)} account(s)")
            return entries
        finally:
            connection.unbind()

    def query(self, scopes: Sequence[str], since_days: int) -> List[AccountRecord]:
        """
        Return accounts created in the last `since_days` days under any of `scopes`.

        Scopes are searched concurrently. If one search fails, searches not yet
        started are cancelled and running ones are awaited before the error is raised.
        Results follow scope order; accounts found under overlapping scopes appear once.
        """
        if not scopes:
            return []

        since = datetime.now(timezone.utc) - timedelta(days=since_days)
        search_filter = created_since_filter(since)
        logger.info(f"Searching {len(scopes)} scope(s) for accounts created since "
                    f"{since.strftime('%Y-%m-%d %H:%M')} UTC")
        logger.debug(f"LDAP filter: {search_filter}")

        workers = max(1, min(self.max_workers, len(scopes)))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="ldap-scope") as executor:
            futures = [executor.submit(self._search_scope, scope, search_filter) for scope in scopes]
            try:
                scope_results = [future.result() for future in futures]
            except BaseException:
                for future in futures:
                    future.cancel()
                raise

        seen = set()
        records = []
        for entries in scope_results:
            for entry in entries:
                dn = entry["dn"].lower()
                if dn and dn in seen:
                    continue
                seen.add(dn)
                records.append(record_from_attributes(entry["attributes"]))

        logger.info(f"Directory returned {len(records)} account(s)")
        return records


def query_new_accounts(directory: DirectoryQuery, scopes: Sequence[str], since_days: int) -> List[AccountRecord]:
    """
    Query the directory, converting client errors into DirectoryError.

    Args:
        directory: Any DirectoryQuery implementation
        scopes: Organizational units to search
        since_days: Day threshold

    Returns:
        List of AccountRecord (may be empty)
    """
    try:
        return list(directory.query(scopes, since_days))
    except DirectoryError:
        raise
    except LDAPException as e:
        raise DirectoryError(f"Directory query failed: {str(e)}") from e
