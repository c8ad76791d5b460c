"""Tests for account_reporting.directory -- attribute parsing and scoped queries.

Covers:
- accountExpires, whenCreated and manager DN parsing
- Mapping raw directory attributes to AccountRecord
- The LDAP search filter
- Multi-scope queries against a fake connection (ordering, de-duplication, cleanup)
- Error conversion to DirectoryError
"""

import threading
from datetime import date, datetime, timezone
from types import SimpleNamespace

import pytest
from ldap3.core.exceptions import LDAPSocketOpenError

from account_reporting.directory import (
    DirectoryError,
    LdapDirectory,
    created_since_filter,
    manager_name,
    parse_account_expires,
    parse_generalized_time,
    query_new_accounts,
    record_from_attributes,
)


def _filetime(day: datetime) -> int:
    return int((day - datetime(1601, 1, 1)).total_seconds()) * 10_000_000


# ============================================================================
# Attribute parsing
# ============================================================================

class TestParseAccountExpires:

    @pytest.mark.parametrize("value", [
        None, "", [], 0, "0", [0], 0x7FFFFFFFFFFFFFFF, "9223372036854775807",
        datetime(1601, 1, 1), datetime(9999, 12, 31, 23, 59, 59),
    ])
    def test_never(self, value):
        assert parse_account_expires(value).is_never

    def test_filetime(self):
        expiration = parse_account_expires([str(_filetime(datetime(2026, 3, 5)))])
        assert expiration.day == date(2026, 3, 5)
        assert expiration.render() == "05/03/2026"

    def test_formatted_datetime(self):
        expiration = parse_account_expires(datetime(2026, 7, 1, tzinfo=timezone.utc))
        assert expiration.day == date(2026, 7, 1)

    def test_garbage_is_never(self):
        assert parse_account_expires("not-a-number").is_never


class TestParseGeneralizedTime:

    def test_text(self):
        assert parse_generalized_time(["20260110123000.0Z"]) == datetime(2026, 1, 10, 12, 30)

    def test_aware_datetime_converted_to_naive_utc(self):
        value = datetime(2026, 1, 10, 12, 30, tzinfo=timezone.utc)
        assert parse_generalized_time(value) == datetime(2026, 1, 10, 12, 30)

    def test_missing(self):
        assert parse_generalized_time(None) is None
        assert parse_generalized_time("garbage") is None


class TestManagerName:

    def test_plain_cn(self):
        assert manager_name("CN=Jane Manager,OU=Staff,DC=corp,DC=example,DC=com") == "Jane Manager"

    def test_escaped_comma(self):
        assert manager_name(["CN=Doe\\, John,OU=Staff,DC=corp"]) == "Doe, John"

    def test_empty(self):
        assert manager_name(None) == ""
        assert manager_name([]) == ""

    def test_not_a_dn(self):
        assert manager_name("Jane Manager") == "Jane Manager"


class TestRecordFromAttributes:

    def test_full_entry(self):
        record = record_from_attributes({
            "displayName": ["Luc Peeters"],
            "sAMAccountName": ["lpeeters"],
            "mail": ["luc.peeters@example.com"],
            "manager": ["CN=Jane Manager,OU=Staff,DC=corp"],
            "company": ["Company SA"],
            "employeeType": ["Contractor"],
            "co": ["Belgium"],
            "accountExpires": ["0"],
            "whenCreated": ["20260112093000.0Z"],
            "telephoneNumber": ["+32 2 555 12 34"],
            "mobile": ["0475123456"],
            "employeeID": ["000123"],
            "pager": [],
        })
        assert record.display_name == "Luc Peeters"
        assert record.manager == "Jane Manager"
        assert record.account_type == "Contractor"
        assert record.country == "Belgium"
        assert record.expiration.is_never
        assert record.created == datetime(2026, 1, 12, 9, 30)
        assert record.mobile_phone == "0475123456"
        assert record.employee_id == "000123"
        assert record.pager == ""

    def test_display_name_falls_back_to_account(self):
        record = record_from_attributes({"sAMAccountName": "svc-backup"})
        assert record.display_name == "svc-backup"
        assert record.country == ""


class TestCreatedSinceFilter:

    def test_filter(self):
        since = datetime(2026, 1, 11, 6, 0, 0, tzinfo=timezone.utc)
        assert created_since_filter(since) == (
            "(&(objectCategory=person)(objectClass=user)(whenCreated>=20260111060000.0Z))"
        )


# ============================================================================
# Queries against a fake connection
# ============================================================================

def _entry(dn, name, country="Belgium"):
    return {
        "type": "searchResEntry",
        "dn": dn,
        "attributes": {"displayName": [name], "co": [country], "accountExpires": ["0"]},
    }


class FakeDirectoryServer:
    """Hands out fake connections whose paged_search serves canned entries per scope."""

    def __init__(self, entries_by_scope, failing_scopes=()):
        self.entries_by_scope = entries_by_scope
        self.failing_scopes = set(failing_scopes)
        self.connections = []
        self.searches = []
        self._lock = threading.Lock()

    def connect(self):
        connection = SimpleNamespace(unbound=False)

        def paged_search(search_base, search_filter, search_scope, attributes, paged_size, generator):
            with self._lock:
                self.searches.append((search_base, search_filter))
            if search_base in self.failing_scopes:
                raise LDAPSocketOpenError("socket connection error")
            yield {"type": "searchResRef", "uri": ["ldap://elsewhere"]}
            for entry in self.entries_by_scope.get(search_base, []):
                yield entry

        def unbind():
            connection.unbound = True

        connection.extend = SimpleNamespace(standard=SimpleNamespace(paged_search=paged_search))
        connection.unbind = unbind
        with self._lock:
            self.connections.append(connection)
        return connection


class TestLdapDirectoryQuery:

    def _directory(self, server, max_workers=2):
        return LdapDirectory(server="ldap://fake", user="", password="",
                             max_workers=max_workers, connection_factory=server.connect)

    def test_results_follow_scope_order(self):
        server = FakeDirectoryServer({
            "OU=A": [_entry("CN=1,OU=A", "First"), _entry("CN=2,OU=A", "Second")],
            "OU=B": [_entry("CN=3,OU=B", "Third", "France")],
        })
        records = self._directory(server).query(["OU=A", "OU=B"], 7)
        assert [r.display_name for r in records] == ["First", "Second", "Third"]
        assert records[2].country == "France"

    def test_overlapping_scopes_deduplicated(self):
        shared = _entry("CN=1,OU=Child,OU=Parent", "Shared")
        server = FakeDirectoryServer({
            "OU=Parent": [shared],
            "OU=Child,OU=Parent": [dict(shared, dn="cn=1,ou=child,ou=parent")],
        })
        records = self._directory(server).query(["OU=Parent", "OU=Child,OU=Parent"], 7)
        assert len(records) == 1

    def test_empty_result(self):
        server = FakeDirectoryServer({})
        assert self._directory(server).query(["OU=Empty"], 30) == []

    def test_no_scopes(self):
        server = FakeDirectoryServer({})
        assert self._directory(server).query([], 7) == []
        assert server.connections == []

    def test_every_connection_unbound(self):
        server = FakeDirectoryServer({"OU=A": [_entry("CN=1,OU=A", "One")]})
        self._directory(server).query(["OU=A", "OU=B", "OU=C"], 7)
        assert len(server.connections) == 3
        assert all(c.unbound for c in server.connections)

    def test_filter_uses_day_threshold(self):
        server = FakeDirectoryServer({})
        self._directory(server).query(["OU=A"], 7)
        _, search_filter = server.searches[0]
        assert "(whenCreated>=" in search_filter

    def test_failure_raises_directory_error_and_cleans_up(self):
        server = FakeDirectoryServer(
            {"OU=A": [_entry("CN=1,OU=A", "One")]},
            failing_scopes={"OU=B"},
        )
        with pytest.raises(DirectoryError, match="socket connection error"):
            query_new_accounts(self._directory(server, max_workers=1), ["OU=A", "OU=B", "OU=C"], 7)
        assert all(c.unbound for c in server.connections)

    def test_missing_server_setting(self, monkeypatch):
        monkeypatch.delenv("LDAP_SERVER", raising=False)
        directory = LdapDirectory(server="", user="", password="")
        with pytest.raises(DirectoryError, match="LDAP_SERVER"):
            query_new_accounts(directory, ["OU=A"], 7)


class TestQueryNewAccounts:

    def test_accepts_any_directory(self):
        fake = SimpleNamespace(query=lambda scopes, since_days: iter([]))
        assert query_new_accounts(fake, ["OU=A"], 7) == []

    def test_other_errors_propagate(self):
        def boom(scopes, since_days):
            raise KeyError("unexpected")
        with pytest.raises(KeyError):
            query_new_accounts(SimpleNamespace(query=boom), ["OU=A"], 7)
